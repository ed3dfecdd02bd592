import unittest

from .. import exc
from .. import extractor
from .. import testing


STATUS_ROWS = [
    ("Threads_connected", "50"),
    ("Queries", "1000"),
    ("Uptime", "3600"),
]

VARIABLE_ROWS = [
    ("max_connections", "151"),
    ("read_only", "OFF"),
    ("version", "8.0.36"),
]

SLAVE_ROW = {
    "Slave_IO_Running": "Yes",
    "Slave_SQL_Running": "Yes",
    "Seconds_Behind_Master": 0,
    "Master_Host": "db0",
}


def _results(**overrides):
    results = {
        extractor.STATUS.statement: STATUS_ROWS,
        extractor.VARIABLES.statement: VARIABLE_ROWS,
        extractor.REPLICATION.statement: [],
        extractor.INNODB.statement: [("Innodb_rows_read", "77")],
        extractor.MYISAM.statement: [("Key_reads", "3")],
    }
    for name, value in overrides.items():
        results[getattr(extractor, name.upper()).statement] = value
    return results


class ExtractTest(unittest.TestCase):
    def test_core(self):
        handle = testing.FakeHandle(_results())
        raw = extractor.extract(handle, now=1000)

        self.assertEqual(
            raw.inventory,
            {"max_connections": "151", "read_only": "OFF", "version": "8.0.36"},
        )
        self.assertEqual(
            raw.merged_metrics(),
            {
                "Threads_connected": "50",
                "Queries": "1000",
                "Uptime": "3600",
                "max_connections": "151",
                "read_only": "OFF",
                "version": "8.0.36",
            },
        )
        self.assertEqual(raw.timestamp, 1000)
        self.assertEqual(
            handle.statements,
            [
                extractor.STATUS.statement,
                extractor.VARIABLES.statement,
                extractor.REPLICATION.statement,
            ],
        )

    def test_sample(self):
        raw = extractor.extract(testing.FakeHandle(_results()), now=1000)
        sample = raw.sample()

        self.assertEqual(sample.timestamp, 1000)
        self.assertEqual(sample["Queries"], "1000")

    def test_unpack(self):
        inventory, metrics = extractor.extract(
            testing.FakeHandle(_results()), now=1000
        )
        self.assertEqual(inventory["version"], "8.0.36")
        self.assertEqual(metrics["Threads_connected"], "50")

    def test_extended_groups(self):
        handle = testing.FakeHandle(_results())
        raw = extractor.extract(
            handle, include_innodb=True, include_myisam=True, now=1000
        )

        metrics = raw.merged_metrics()
        self.assertEqual(metrics["Innodb_rows_read"], "77")
        self.assertEqual(metrics["Key_reads"], "3")
        self.assertIn(extractor.INNODB.statement, handle.statements)
        self.assertIn(extractor.MYISAM.statement, handle.statements)

    def test_extended_groups_not_queried(self):
        handle = testing.FakeHandle(_results())
        raw = extractor.extract(handle, now=1000)

        self.assertNotIn("Innodb_rows_read", raw.merged_metrics())
        self.assertNotIn(extractor.INNODB.statement, handle.statements)
        self.assertNotIn(extractor.MYISAM.statement, handle.statements)

    def test_replica(self):
        handle = testing.FakeHandle(_results(replication=[SLAVE_ROW]))
        metrics = extractor.extract(handle, now=1000).merged_metrics()

        self.assertEqual(metrics["Slave_IO_Running"], "Yes")
        self.assertEqual(metrics["Master_Host"], "db0")

    def test_multi_source_replica_uses_first_row(self):
        second = dict(SLAVE_ROW, Master_Host="db9")
        handle = testing.FakeHandle(_results(replication=[SLAVE_ROW, second]))
        metrics = extractor.extract(handle, now=1000).merged_metrics()

        self.assertEqual(metrics["Master_Host"], "db0")

    def test_replica_status_columns(self):
        row = {
            "Replica_IO_Running": "Yes",
            "Replica_SQL_Running": "No",
            "Seconds_Behind_Source": 4,
            "Source_Host": "db0",
            "Exec_Source_Log_Pos": 1200,
        }
        handle = testing.FakeHandle(_results(replication=[row]))
        metrics = extractor.extract(handle, now=1000).merged_metrics()

        self.assertEqual(metrics["Slave_IO_Running"], "Yes")
        self.assertEqual(metrics["Slave_SQL_Running"], "No")
        self.assertEqual(metrics["Seconds_Behind_Master"], 4)
        self.assertEqual(metrics["Master_Host"], "db0")
        self.assertEqual(metrics["Exec_Master_Log_Pos"], 1200)
        self.assertNotIn("Replica_IO_Running", metrics)
        self.assertEqual(
            handle.statements.count(extractor.REPLICATION.statement), 1
        )
        self.assertNotIn(extractor.REPLICATION.fallback, handle.statements)

    def test_replica_status_falls_back(self):
        results = _results(
            replication=testing.query_error(
                extractor.REPLICATION.statement,
                "(1064, 'You have an error in your SQL syntax')",
            )
        )
        results[extractor.REPLICATION.fallback] = [SLAVE_ROW]
        handle = testing.FakeHandle(results)
        metrics = extractor.extract(handle, now=1000).merged_metrics()

        self.assertEqual(metrics["Slave_IO_Running"], "Yes")
        self.assertEqual(metrics["Master_Host"], "db0")
        self.assertEqual(
            handle.statements[-2:],
            [extractor.REPLICATION.statement, extractor.REPLICATION.fallback],
        )

    def test_replica_column(self):
        self.assertEqual(
            extractor.replica_column("Relay_Source_Log_File"),
            "Relay_Master_Log_File",
        )
        self.assertEqual(
            extractor.replica_column("Threads_connected"), "Threads_connected"
        )

    def test_optional_group_failure_is_empty(self):
        handle = testing.FakeHandle(
            _results(
                replication=testing.query_error(
                    extractor.REPLICATION.statement,
                    "(1227, 'Access denied; you need the REPLICATION "
                    "CLIENT privilege')",
                ),
                innodb=testing.query_error(),
            )
        )
        raw = extractor.extract(handle, include_innodb=True, now=1000)

        self.assertEqual(raw.metrics["replication"], {})
        self.assertEqual(raw.metrics["innodb"], {})
        self.assertEqual(raw.merged_metrics()["Queries"], "1000")

    def test_required_group_failure(self):
        for name in ("status", "variables"):
            handle = testing.FakeHandle(
                _results(**{name: testing.query_error()})
            )
            with self.assertRaises(exc.QueryError):
                extractor.extract(handle, now=1000)

    def test_empty_groups(self):
        handle = testing.FakeHandle(_results(status=[], variables=[]))
        raw = extractor.extract(handle, now=1000)

        self.assertEqual(raw.inventory, {})
        self.assertEqual(raw.merged_metrics(), {})

    def test_merge_order(self):
        handle = testing.FakeHandle(
            _results(
                status=[("shared_key", "from status")],
                variables=[("shared_key", "from variables")],
            )
        )
        metrics = extractor.extract(handle, now=1000).merged_metrics()
        self.assertEqual(metrics["shared_key"], "from variables")
