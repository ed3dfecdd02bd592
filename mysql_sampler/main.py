from __future__ import annotations

import argparse
import logging
import os
import sys
import tempfile
from typing import Any
from typing import Callable
from typing import ContextManager
from typing import Dict
from typing import IO
from typing import Mapping
from typing import Optional
from typing import TYPE_CHECKING

from . import __version__
from . import builder
from . import connection
from . import definitions
from . import exc
from . import extractor
from . import metric_types
from . import normalizer
from . import payload
from .cache import FileSampleCache
from .logging import StderrHandler

if TYPE_CHECKING:
    from .cache import CachedCounterState
    from .cache import SampleCache
    from .connection import ConnectionDescriptor
    from .connection import Handle


log = logging.getLogger(__name__)

INTEGRATION_NAME = "com.newrelic.mysql"


def _flag(parser, name, help_):
    parser.add_argument("--%s" % name, action="store_true", help=help_)


def parse_args(argv=None, environ: Optional[Mapping[str, str]] = None):
    if environ is None:
        environ = os.environ

    parser = argparse.ArgumentParser(
        prog="mysql-sampler",
        description="Sample a MySQL server's status and configuration "
        "for the monitoring agent",
    )
    parser.add_argument(
        "--hostname",
        type=str,
        default="localhost",
        help="Hostname or IP where MySQL is running.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3306,
        help="Port on which MySQL server is listening.",
    )
    parser.add_argument(
        "--username", type=str, help="Username for accessing the database."
    )
    parser.add_argument(
        "--password",
        type=str,
        default=environ.get("MYSQL_PASSWORD"),
        help="Password for the given user (or set MYSQL_PASSWORD).",
    )
    parser.add_argument("--database", type=str, default="", help="Database name")
    parser.add_argument(
        "--connect_timeout",
        type=int,
        default=connection.DEFAULT_CONNECT_TIMEOUT,
        help="Seconds to wait for the server to accept a connection.",
    )
    _flag(
        parser,
        "remote_monitoring",
        "Identifies the monitored entity as 'remote'. In doubt: set to true",
    )
    _flag(parser, "extended_metrics", "Enable extended metrics")
    _flag(parser, "extended_innodb_metrics", "Enable InnoDB extended metrics")
    _flag(parser, "extended_myisam_metrics", "Enable MyISAM extended metrics")
    _flag(
        parser,
        "old_passwords",
        "Allow old passwords: https://dev.mysql.com/doc/refman/5.6/en/"
        "server-system-variables.html#sysvar_old_passwords",
    )

    # flags every agent integration accepts
    _flag(parser, "verbose", "Print more information to logs.")
    _flag(parser, "pretty", "Print pretty formatted JSON.")
    _flag(parser, "all", "Publish all kind of data (metrics, inventory).")
    _flag(parser, "metrics", "Publish metrics data.")
    _flag(parser, "inventory", "Publish inventory data.")

    return parser.parse_args(argv)


def collects_all(options) -> bool:
    return options.all or not (options.metrics or options.inventory)


def collects_metrics(options) -> bool:
    return collects_all(options) or options.metrics


def collects_inventory(options) -> bool:
    return collects_all(options) or options.inventory


def enabled_groups(options):
    groups = [definitions.CORE, definitions.REPLICATION]
    if options.extended_metrics:
        groups.append(definitions.EXTENDED)
    if options.extended_innodb_metrics:
        groups.append(definitions.INNODB)
    if options.extended_myisam_metrics:
        groups.append(definitions.MYISAM)
    return groups


def cache_path(environ: Optional[Mapping[str, str]] = None) -> str:
    if environ is None:
        environ = os.environ
    path = environ.get("NRIA_CACHE_PATH")
    if path:
        return path
    return os.path.join(
        tempfile.gettempdir(), "nr-integrations", "%s.json" % INTEGRATION_NAME
    )


def descriptor_for(options) -> ConnectionDescriptor:
    return connection.ConnectionDescriptor(
        hostname=options.hostname,
        port=options.port,
        username=options.username,
        password=options.password,
        database=options.database,
        old_passwords=options.old_passwords,
        connect_timeout=options.connect_timeout,
    )


class Sampler:
    """Runs one sampling pass, start to finish.

    Steps are connect, extract, inventory, metrics, cache store, publish.
    Inventory and metrics can each be turned off by options.  Any
    :class:`.exc.SamplerError` raised by :meth:`.run` means the run failed
    and nothing was published; a sample cache that can't be read or written
    only costs the DELTA / RATE values of this run or the next.

    """

    def __init__(
        self,
        options: argparse.Namespace,
        cache: SampleCache,
        registry: definitions.Registry = metric_types.REGISTRY,
        open_handle: Optional[Callable[..., ContextManager[Handle]]] = None,
        stdout: Optional[IO[str]] = None,
        log: logging.Logger = log,
    ):
        self.options = options
        self.cache = cache
        self.registry = registry
        self.open_handle = (
            open_handle if open_handle is not None else connection.open_handle
        )
        self.stdout = stdout if stdout is not None else sys.stdout
        self.log = log

    def _load_previous(self, entity_key: str) -> Dict[str, CachedCounterState]:
        try:
            return self.cache.load(entity_key)
        except exc.StoreError as err:
            self.log.warning(
                "previous sample unavailable, counters start over: %s", err
            )
            return {}

    def _store_current(
        self, entity_key: str, states: Dict[str, CachedCounterState]
    ) -> None:
        try:
            self.cache.store(entity_key, states)
        except exc.StoreError as err:
            self.log.error("could not store sample for next run: %s", err)

    def run(self) -> payload.Integration:
        options = self.options

        integration = payload.Integration(INTEGRATION_NAME, __version__)
        entity = builder.create_entity(
            integration, options.remote_monitoring, options.hostname, options.port
        )

        with self.open_handle(descriptor_for(options), self.log) as handle:
            raw = extractor.extract(
                handle,
                include_innodb=options.extended_innodb_metrics,
                include_myisam=options.extended_myisam_metrics,
            )

        if collects_inventory(options):
            builder.populate_inventory(entity.inventory, raw.inventory)
            self.log.debug("inventory has %d items", len(raw.inventory))

        if collects_metrics(options):
            registry = self.registry.enabled(enabled_groups(options))
            sample = raw.sample()
            previous = self._load_previous(entity.key)

            metrics = normalizer.normalize(sample, registry, previous)
            metric_set = builder.new_metric_set(
                entity, options.hostname, options.port
            )
            builder.populate_metrics(metric_set, metrics)
            self.log.debug(
                "%d metrics from %d raw values", len(metrics), len(sample)
            )

            self._store_current(
                entity.key,
                normalizer.counter_states(sample, registry, entity.key),
            )

        integration.publish(self.stdout, pretty=options.pretty)
        return integration


def main(argv=None, environ: Optional[Mapping[str, Any]] = None) -> None:
    options = parse_args(argv, environ)
    log = StderrHandler.setup("mysql_sampler", options.verbose)

    sampler = Sampler(options, FileSampleCache(cache_path(environ)), log=log)
    try:
        sampler.run()
    except exc.SamplerError as err:
        log.error("%s", err)
        sys.exit(1)


if __name__ == "__main__":
    main()
