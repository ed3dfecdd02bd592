import unittest

from .. import definitions
from .. import metric_types
from ..definitions import CORE
from ..definitions import DELTA
from ..definitions import GAUGE
from ..definitions import INNODB
from ..definitions import RATE


class TransformTest(unittest.TestCase):
    def test_number(self):
        self.assertEqual(definitions.number("12"), 12)
        self.assertEqual(definitions.number(" 1.5 "), 1.5)
        self.assertEqual(definitions.number(7), 7)
        self.assertEqual(definitions.number(True), 1)
        self.assertIsNone(definitions.number("5.7.44-log"))
        self.assertIsNone(definitions.number(None))

    def test_number_not_finite(self):
        for value in ("nan", "NaN", "inf", "-Infinity"):
            self.assertIsNone(definitions.number(value))
        self.assertIsNone(definitions.number(float("nan")))
        self.assertIsNone(definitions.number(float("-inf")))
        self.assertEqual(definitions.number("1e3"), 1000.0)

    def test_flags(self):
        self.assertEqual(definitions.on_off("ON"), 1)
        self.assertEqual(definitions.on_off("off"), 0)
        self.assertIsNone(definitions.on_off("maybe"))
        self.assertEqual(definitions.yes_no("Yes"), 1)
        self.assertEqual(definitions.yes_no("No"), 0)
        self.assertIsNone(definitions.yes_no("Connecting"))
        self.assertIsNone(definitions.yes_no(None))

    def test_string(self):
        self.assertEqual(definitions.string("8.0.36"), "8.0.36")
        self.assertIsNone(definitions.string(None))


class DefinitionTest(unittest.TestCase):
    def test_group_template(self):
        defs = definitions.group(
            CORE,
            ("Threads_connected", "net.threadsConnected", GAUGE),
            ("read_only", "db.readOnly", GAUGE, definitions.on_off),
        )
        self.assertEqual(
            [d.key for d in defs], ["Threads_connected", "read_only"]
        )
        self.assertIs(defs[0].transform, definitions.number)
        self.assertIs(defs[1].transform, definitions.on_off)
        self.assertEqual(defs[1].group, CORE)

    def test_immutable(self):
        definition = definitions.MetricDefinition(
            "Queries", "query.queriesPerSecond", RATE
        )
        with self.assertRaises(AttributeError):
            definition.kind = GAUGE
        self.assertIs(definition.kind, RATE)

    def test_unknown_group(self):
        self.assertRaises(
            ValueError,
            definitions.MetricDefinition,
            "Queries",
            "query.queriesPerSecond",
            RATE,
            "nonexistent",
        )

    def test_kind_is_counter(self):
        self.assertFalse(GAUGE.is_counter)
        self.assertTrue(DELTA.is_counter)
        self.assertTrue(RATE.is_counter)


class RegistryTest(unittest.TestCase):
    def test_lookup(self):
        registry = metric_types.REGISTRY
        definition = registry.lookup("Queries")
        self.assertEqual(definition.output_name, "query.queriesPerSecond")
        self.assertIs(definition.kind, RATE)

        self.assertIsNone(registry.lookup("Some_counter_from_the_future"))

    def test_duplicate_key(self):
        defs = definitions.group(
            CORE,
            ("Queries", "query.queriesPerSecond", RATE),
            ("Queries", "query.queries", GAUGE),
        )
        self.assertRaises(ValueError, definitions.Registry, defs)

    def test_enabled_groups(self):
        registry = metric_types.REGISTRY
        self.assertIn("Innodb_rows_read", registry)

        core_only = registry.enabled([CORE])
        self.assertNotIn("Innodb_rows_read", core_only)
        self.assertIn("Threads_connected", core_only)
        self.assertEqual(core_only.groups, frozenset([CORE]))

        # the original is untouched
        self.assertIn("Innodb_rows_read", registry)

        with_innodb = core_only.enabled([CORE, INNODB])
        # can't widen past what the registry was built with
        self.assertNotIn("Innodb_rows_read", with_innodb)

    def test_enabled_derived(self):
        names = [
            d.output_name
            for d in metric_types.REGISTRY.enabled([CORE]).derived
        ]
        self.assertIn("db.qCacheHitRatio", names)
        self.assertNotIn("db.keyCacheUtilization", names)

    def test_innodb_outputs_are_innodb_group(self):
        for definition in metric_types.REGISTRY:
            if definition.output_name.startswith("db.innodb."):
                self.assertEqual(definition.group, INNODB)


class DerivedMetricTest(unittest.TestCase):
    def _derived(self, name):
        for derived in metric_types.derived:
            if derived.output_name == name:
                return derived.fn
        raise KeyError(name)

    def test_qcache_hit_ratio(self):
        fn = self._derived("db.qCacheHitRatio")
        self.assertEqual(fn({"Qcache_hits": "30", "Com_select": "70"}), 0.3)
        self.assertIsNone(fn({"Qcache_hits": "0", "Com_select": "0"}))
        self.assertIsNone(fn({"Com_select": "70"}))

    def test_qcache_utilization(self):
        fn = self._derived("db.qCacheUtilization")
        self.assertEqual(
            fn({"Qcache_free_blocks": "1", "Qcache_total_blocks": "4"}), 0.75
        )
        self.assertIsNone(
            fn({"Qcache_free_blocks": "0", "Qcache_total_blocks": "0"})
        )

    def test_thread_cache_miss_rate(self):
        fn = self._derived("db.threadCacheMissRate")
        self.assertEqual(
            fn({"Threads_created": "5", "Connections": "50"}), 0.1
        )
        self.assertIsNone(fn({"Threads_created": "5", "Connections": "0"}))

    def test_key_cache_utilization(self):
        fn = self._derived("db.keyCacheUtilization")
        self.assertEqual(
            fn(
                {
                    "Key_blocks_unused": "1024",
                    "key_cache_block_size": "1024",
                    "key_buffer_size": "4194304",
                }
            ),
            0.75,
        )
        self.assertIsNone(fn({"key_buffer_size": "4194304"}))

    def test_node_type(self):
        fn = self._derived("cluster.nodeType")
        self.assertEqual(fn({"Slave_IO_Running": "Yes"}), "slave")
        self.assertEqual(fn({"Threads_connected": "5"}), "master")
