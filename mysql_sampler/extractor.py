from __future__ import annotations

import logging
import time
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import TYPE_CHECKING

from . import exc
from .normalizer import RawSample

if TYPE_CHECKING:
    from .connection import Handle


log = logging.getLogger(__name__)


class QueryGroup:
    """One fixed, read-only statement and how to read its result.

    ``pairs`` groups return ``(name, value)`` rows as SHOW STATUS does;
    otherwise the statement returns at most one wide row, as SHOW SLAVE
    STATUS does, whose columns become the keys.

    ``fallback`` is a statement run instead when ``statement`` fails, for
    servers that predate it.  ``rename`` is applied to every key read.

    """

    __slots__ = (
        "name",
        "statement",
        "required",
        "pairs",
        "fallback",
        "rename",
    )

    def __init__(
        self,
        name,
        statement,
        required=False,
        pairs=True,
        fallback=None,
        rename=None,
    ):
        self.name = name
        self.statement = statement
        self.required = required
        self.pairs = pairs
        self.fallback = fallback
        self.rename = rename

    def __repr__(self):
        return "mysql_sampler.QueryGroup(%r)" % self.name


STATUS = QueryGroup(
    "status",
    "SHOW GLOBAL STATUS WHERE Variable_name NOT LIKE 'Innodb%' "
    "AND Variable_name NOT LIKE 'Key%'",
    required=True,
)
VARIABLES = QueryGroup("variables", "SHOW GLOBAL VARIABLES", required=True)


def replica_column(name: str) -> str:
    """Map a SHOW REPLICA STATUS column to its SHOW SLAVE STATUS name.

    MySQL 8.0.22 renamed the columns word for word, e.g.
    ``Replica_IO_Running`` / ``Slave_IO_Running`` and
    ``Seconds_Behind_Source`` / ``Seconds_Behind_Master``.

    """
    return name.replace("Replica", "Slave").replace("Source", "Master")


# SHOW SLAVE STATUS is gone as of MySQL 8.4; SHOW REPLICA STATUS only
# arrived in 8.0.22
REPLICATION = QueryGroup(
    "replication",
    "SHOW REPLICA STATUS",
    pairs=False,
    fallback="SHOW SLAVE STATUS",
    rename=replica_column,
)
INNODB = QueryGroup("innodb", "SHOW GLOBAL STATUS LIKE 'Innodb%'")
MYISAM = QueryGroup("myisam", "SHOW GLOBAL STATUS LIKE 'Key%'")

# merge order; on a key collision the later group wins
METRIC_GROUPS = (STATUS, VARIABLES, REPLICATION, INNODB, MYISAM)


class RawData:
    """Everything read from the server in one run."""

    __slots__ = ("inventory", "metrics", "timestamp")

    inventory: Dict[str, Any]
    metrics: Dict[str, Dict[str, Any]]
    timestamp: float

    def __init__(self, inventory, metrics, timestamp):
        self.inventory = inventory
        self.metrics = metrics
        self.timestamp = timestamp

    def merged_metrics(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for group in METRIC_GROUPS:
            merged.update(self.metrics.get(group.name, {}))
        return merged

    def sample(self) -> RawSample:
        return RawSample(self.merged_metrics(), self.timestamp)

    def __iter__(self):
        # allows "inventory, metrics = extract(...)"
        return iter((self.inventory, self.merged_metrics()))


def _run_statement(
    handle: Handle, group: QueryGroup, statement: str
) -> Dict[str, Any]:
    if group.pairs:
        rows = handle.rows(statement)
        return {str(row[0]): row[1] for row in rows}

    mappings: List[Dict[str, Any]] = handle.mappings(statement)
    if not mappings:
        return {}
    if len(mappings) > 1:
        log.debug(
            "%s returned %d rows, using the first", statement, len(mappings)
        )
    return dict(mappings[0])


def _run_group(handle: Handle, group: QueryGroup) -> Dict[str, Any]:
    try:
        values = _run_statement(handle, group, group.statement)
    except exc.QueryError as err:
        if group.fallback is None:
            raise
        log.debug(
            "%s failed, trying %s: %s", group.statement, group.fallback, err
        )
        values = _run_statement(handle, group, group.fallback)

    if group.rename is not None:
        values = {group.rename(key): value for key, value in values.items()}
    return values


def _read_group(handle: Handle, group: QueryGroup) -> Dict[str, Any]:
    try:
        values = _run_group(handle, group)
    except exc.QueryError as err:
        if group.required:
            raise
        log.warning("skipping optional %s group: %s", group.name, err)
        return {}

    if not values:
        log.debug("%s group returned no rows", group.name)
    return values


def extract(
    handle: Handle,
    include_innodb: bool = False,
    include_myisam: bool = False,
    now: Optional[float] = None,
) -> RawData:
    """Read status, variables and the enabled optional groups.

    Raises :class:`.exc.QueryError` if a required group fails.  Optional
    groups that fail or return nothing come back empty.

    """
    if now is None:
        now = time.time()

    groups = [STATUS, VARIABLES, REPLICATION]
    if include_innodb:
        groups.append(INNODB)
    if include_myisam:
        groups.append(MYISAM)

    metrics = {group.name: _read_group(handle, group) for group in groups}

    return RawData(
        inventory=dict(metrics[VARIABLES.name]),
        metrics=metrics,
        timestamp=now,
    )
