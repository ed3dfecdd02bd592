"""Metric definition records and the registry that looks them up.

A definition says what one raw status / variable key turns into on the
published metric set: its output name, whether it is a point-in-time
``GAUGE`` or a growing counter reported as a ``DELTA`` or a ``RATE``, and a
static transform applied to the raw (or differenced) value.

The actual table lives in :mod:`mysql_sampler.metric_types`.

"""
from __future__ import annotations

import enum
import math
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import Iterator
from typing import Mapping
from typing import Optional
from typing import Sequence
from typing import Tuple
from typing import Union

Value = Union[int, float, str]


class Kind(enum.Enum):
    GAUGE = "gauge"
    DELTA = "delta"
    RATE = "rate"

    @property
    def is_counter(self) -> bool:
        return self is not Kind.GAUGE


GAUGE = Kind.GAUGE
DELTA = Kind.DELTA
RATE = Kind.RATE

# definition groups; each one is switched on by a configuration flag,
# "core" and "replication" always being on.
CORE = "core"
EXTENDED = "extended"
INNODB = "innodb"
MYISAM = "myisam"
REPLICATION = "replication"

GROUPS = (CORE, EXTENDED, INNODB, MYISAM, REPLICATION)


def number(value: Any) -> Optional[Union[int, float]]:
    """Parse a raw status value as an int or float, or return None.

    ``nan`` and infinities aren't numbers here; they can't be published.

    """

    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if value is None:
        return None
    value = str(value).strip()
    try:
        return int(value)
    except ValueError:
        pass
    try:
        parsed = float(value)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def _flag(true_word: str, false_word: str) -> Callable[[Any], Optional[int]]:
    def coerce(value):
        if value is None:
            return None
        word = str(value).strip().lower()
        if word == true_word:
            return 1
        elif word == false_word:
            return 0
        else:
            return None

    coerce.__name__ = "%s_%s" % (true_word, false_word)
    return coerce


on_off = _flag("on", "off")
yes_no = _flag("yes", "no")


def string(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class MetricDefinition:
    """An immutable mapping of one raw key to one published metric."""

    __slots__ = ("key", "output_name", "kind", "group", "transform")

    key: str
    output_name: str
    kind: Kind
    group: str
    transform: Callable[[Any], Optional[Value]]

    def __init__(self, key, output_name, kind, group=CORE, transform=None):
        if group not in GROUPS:
            raise ValueError("unknown definition group %r" % group)
        if transform is None:
            transform = number
        object.__setattr__(self, "key", key)
        object.__setattr__(self, "output_name", output_name)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "group", group)
        object.__setattr__(self, "transform", transform)

    def __setattr__(self, key, value):
        raise AttributeError("MetricDefinition is immutable")

    def __eq__(self, other):
        if not isinstance(other, MetricDefinition):
            return False
        return [getattr(self, k) for k in self.__slots__] == [
            getattr(other, k) for k in self.__slots__
        ]

    def __hash__(self):
        return hash((self.key, self.output_name, self.kind, self.group))

    def __repr__(self):
        return "mysql_sampler.MetricDefinition(%s)" % (
            ", ".join(
                "%s=%r" % (k, getattr(self, k))
                for k in self.__slots__
                if k != "transform"
            ),
        )


class DerivedMetric:
    """A gauge computed from more than one raw key of the same sample.

    ``fn`` receives the raw sample mapping and returns the value, or None
    when the inputs it needs aren't there.

    """

    __slots__ = ("output_name", "group", "fn")

    def __init__(
        self,
        output_name: str,
        fn: Callable[[Mapping[str, Any]], Optional[Value]],
        group: str = CORE,
    ):
        if group not in GROUPS:
            raise ValueError("unknown definition group %r" % group)
        object.__setattr__(self, "output_name", output_name)
        object.__setattr__(self, "group", group)
        object.__setattr__(self, "fn", fn)

    def __setattr__(self, key, value):
        raise AttributeError("DerivedMetric is immutable")

    kind = GAUGE

    def __repr__(self):
        return "mysql_sampler.DerivedMetric(%r, group=%r)" % (
            self.output_name,
            self.group,
        )


def group(
    group_name: str,
    *template: Union[Tuple[str, str, Kind], Tuple[str, str, Kind, Callable]],
) -> Sequence[MetricDefinition]:
    """Build definitions for one group from a compact data template.

    E.g.::

        net = group(
            CORE,
            ("Threads_connected", "net.threadsConnected", GAUGE),
            ("Connections", "net.connectionsPerSecond", RATE),
            ("read_only", "db.readOnly", GAUGE, on_off),
        )

    """
    return tuple(
        MetricDefinition(entry[0], entry[1], entry[2], group_name, *entry[3:])
        for entry in template
    )


class Registry:
    """Read-only lookup of definitions by raw key."""

    __slots__ = ("_by_key", "_derived", "groups")

    _by_key: Dict[str, MetricDefinition]
    _derived: Tuple[DerivedMetric, ...]

    def __init__(
        self,
        definitions: Iterable[MetricDefinition],
        derived: Iterable[DerivedMetric] = (),
        groups: Iterable[str] = GROUPS,
    ):
        self.groups = frozenset(groups)
        self._by_key = {}
        for definition in definitions:
            if definition.group not in self.groups:
                continue
            if definition.key in self._by_key:
                raise ValueError(
                    "duplicate definition for key %r" % definition.key
                )
            self._by_key[definition.key] = definition
        self._derived = tuple(d for d in derived if d.group in self.groups)

    def lookup(self, key: str) -> Optional[MetricDefinition]:
        return self._by_key.get(key)

    def enabled(self, groups: Iterable[str]) -> Registry:
        """Return a registry holding only the definitions of ``groups``."""

        groups = self.groups.intersection(groups)
        return Registry(self._by_key.values(), self._derived, groups)

    @property
    def derived(self) -> Tuple[DerivedMetric, ...]:
        return self._derived

    def __iter__(self) -> Iterator[MetricDefinition]:
        return iter(self._by_key.values())

    def __len__(self):
        return len(self._by_key)

    def __contains__(self, key):
        return key in self._by_key
