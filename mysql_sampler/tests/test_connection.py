import unittest
from unittest import mock

from sqlalchemy import create_engine
from sqlalchemy import exc as sa_exc

from .. import connection
from .. import exc


def _descriptor(**kw):
    args = dict(
        hostname="db1",
        port=3307,
        username="scott",
        password="tiger",
        database="",
    )
    args.update(kw)
    return connection.ConnectionDescriptor(**args)


class DescriptorTest(unittest.TestCase):
    def test_url(self):
        url = _descriptor(database="shop").url

        self.assertEqual(url.drivername, "mysql+pymysql")
        self.assertEqual(url.host, "db1")
        self.assertEqual(url.port, 3307)
        self.assertEqual(url.username, "scott")
        self.assertEqual(url.password, "tiger")
        self.assertEqual(url.database, "shop")

    def test_url_no_database(self):
        self.assertIsNone(_descriptor().url.database)

    def test_dsn_masks_password(self):
        self.assertEqual(_descriptor().dsn, "scott:***@tcp(db1:3307)/")
        self.assertEqual(
            _descriptor(database="shop", old_passwords=True).dsn,
            "scott:***@tcp(db1:3307)/shop?allowOldPasswords=true",
        )
        self.assertNotIn("tiger", repr(_descriptor()))

    def test_connect_args(self):
        self.assertEqual(
            _descriptor(connect_timeout=3).connect_args, {"connect_timeout": 3}
        )


class OpenHandleTest(unittest.TestCase):
    def _engine(self):
        engine = mock.Mock()
        engine.connect.return_value = mock.Mock()
        return engine

    def test_closes_on_success(self):
        engine = self._engine()
        with mock.patch.object(
            connection, "create_engine", return_value=engine
        ) as create_engine_:
            with connection.open_handle(_descriptor()) as handle:
                self.assertIs(handle.connection, engine.connect.return_value)

        url = create_engine_.mock_calls[0][1][0]
        self.assertEqual(url.host, "db1")
        self.assertEqual(
            create_engine_.mock_calls[0][2]["poolclass"], connection.NullPool
        )
        handle.connection.close.assert_called_once_with()
        engine.dispose.assert_called_once_with()

    def test_closes_on_error(self):
        engine = self._engine()
        with mock.patch.object(
            connection, "create_engine", return_value=engine
        ):
            with self.assertRaises(exc.QueryError):
                with connection.open_handle(_descriptor()):
                    raise exc.QueryError("SHOW GLOBAL STATUS", "gone away")

        engine.connect.return_value.close.assert_called_once_with()
        engine.dispose.assert_called_once_with()

    def test_connect_failure(self):
        engine = self._engine()
        engine.connect.side_effect = sa_exc.OperationalError(
            None,
            None,
            Exception("(1045, \"Access denied for user 'scott'@'db1'\")"),
        )
        with mock.patch.object(
            connection, "create_engine", return_value=engine
        ):
            with self.assertRaises(exc.ConnectionError) as ctx:
                with connection.open_handle(_descriptor()):
                    self.fail("should not get here")

        message = str(ctx.exception)
        self.assertIn("Access denied", message)
        self.assertIn("db1:3307", message)
        self.assertNotIn("tiger", message)
        engine.dispose.assert_called_once_with()

    def test_old_passwords_warns(self):
        log = mock.Mock()
        with mock.patch.object(
            connection, "create_engine", return_value=self._engine()
        ):
            with connection.open_handle(_descriptor(old_passwords=True), log):
                pass

        self.assertEqual(len(log.warning.mock_calls), 1)


class HandleTest(unittest.TestCase):
    """Run the handle against an in-memory SQLite database."""

    def setUp(self):
        self.engine = create_engine("sqlite://")
        self.conn = self.engine.connect()
        self.handle = connection.Handle(self.conn)

    def tearDown(self):
        self.conn.close()
        self.engine.dispose()

    def test_rows(self):
        self.assertEqual(
            self.handle.rows(
                "SELECT 'Threads_connected', '5' "
                "UNION ALL SELECT 'Queries', '1000'"
            ),
            [("Threads_connected", "5"), ("Queries", "1000")],
        )

    def test_rows_with_percent(self):
        self.assertEqual(
            self.handle.rows("SELECT 'Innodb_rows_read' LIKE 'Innodb%'"),
            [(1,)],
        )

    def test_mappings(self):
        self.assertEqual(
            self.handle.mappings(
                "SELECT 'Yes' AS Slave_IO_Running, 0 AS Last_IO_Errno"
            ),
            [{"Slave_IO_Running": "Yes", "Last_IO_Errno": 0}],
        )

    def test_no_rows(self):
        self.assertEqual(self.handle.rows("SELECT 1 WHERE 1 = 0"), [])

    def test_query_error(self):
        with self.assertRaises(exc.QueryError) as ctx:
            self.handle.rows("SHOW GLOBAL STATUS")

        self.assertEqual(ctx.exception.statement, "SHOW GLOBAL STATUS")
