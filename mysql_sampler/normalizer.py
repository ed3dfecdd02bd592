from __future__ import annotations

import logging
import time
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Optional
from typing import TYPE_CHECKING

from .cache import CachedCounterState
from .definitions import DELTA
from .definitions import GAUGE
from .definitions import Kind
from .definitions import number
from .definitions import RATE

if TYPE_CHECKING:
    from .definitions import MetricDefinition
    from .definitions import Registry
    from .definitions import Value


log = logging.getLogger(__name__)


class RawSample(Mapping[str, Any]):
    """Raw key / value pairs read from the server at one point in time."""

    __slots__ = ("_values", "timestamp")

    _values: Dict[str, Any]
    timestamp: float

    def __init__(
        self, values: Mapping[str, Any], timestamp: Optional[float] = None
    ):
        self._values = dict(values)
        self.timestamp = time.time() if timestamp is None else timestamp

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self):
        return "mysql_sampler.RawSample(%d values, timestamp=%r)" % (
            len(self._values),
            self.timestamp,
        )


class NormalizedMetric:
    """A publish-ready metric value."""

    __slots__ = ("name", "value", "attributes")

    def __init__(self, name: str, value: Value, attributes=None):
        self.name = name
        self.value = value
        self.attributes = attributes or {}

    def __eq__(self, other):
        if not isinstance(other, NormalizedMetric):
            return False
        return [getattr(self, k) for k in self.__slots__] == [
            getattr(other, k) for k in self.__slots__
        ]

    def __repr__(self):
        return "mysql_sampler.NormalizedMetric(%r, %r)" % (
            self.name,
            self.value,
        )


_NormalizerFn = Callable[
    ["MetricDefinition", Any, Optional[CachedCounterState], float],
    Optional["Value"],
]

_normalizers: Dict[Kind, _NormalizerFn] = {}


def normalizes(kind: Kind) -> Callable[[_NormalizerFn], _NormalizerFn]:
    def decorate(fn):
        _normalizers[kind] = fn
        return fn

    return decorate


@normalizes(GAUGE)
def _normalize_gauge(definition, raw_value, previous, now):
    return definition.transform(raw_value)


def _growth(definition, raw_value, previous):
    current = number(raw_value)
    if current is None:
        log.debug(
            "counter %s has non-numeric value %r, skipping",
            definition.key,
            raw_value,
        )
        return None

    if previous is None:
        log.debug(
            "no previous value for counter %s, skipping until next run",
            definition.key,
        )
        return None

    growth = current - previous.value
    if growth < 0:
        # counter went backwards; the server restarted or the counter
        # was flushed.
        log.debug(
            "counter %s was reset (%s -> %s), reporting 0",
            definition.key,
            previous.value,
            current,
        )
        growth = 0
    return growth


@normalizes(DELTA)
def _normalize_delta(definition, raw_value, previous, now):
    growth = _growth(definition, raw_value, previous)
    if growth is None:
        return None
    return definition.transform(growth)


@normalizes(RATE)
def _normalize_rate(definition, raw_value, previous, now):
    growth = _growth(definition, raw_value, previous)
    if growth is None:
        return None

    elapsed = now - previous.timestamp
    if elapsed <= 0:
        log.debug(
            "no time has passed since the previous value of %s "
            "(%s seconds), skipping",
            definition.key,
            elapsed,
        )
        return None

    growth = definition.transform(growth)
    if growth is None:
        return None
    return growth / elapsed


def normalize(
    sample: Mapping[str, Any],
    registry: Registry,
    previous: Mapping[str, CachedCounterState],
    now: Optional[float] = None,
) -> List[NormalizedMetric]:
    """Turn raw values into published metric values.

    Gauges come through transformed; DELTA and RATE counters are computed
    against ``previous``, the counter states of the last run, and are left
    out when there isn't one.  A counter lower than its previous value
    yields 0, never a negative number.

    ``now`` is the observation time of ``sample``; it defaults to
    ``sample.timestamp``.  Nothing passed in is modified.

    """
    if now is None:
        now = sample.timestamp

    metrics = []
    for key, raw_value in sample.items():
        definition = registry.lookup(key)
        if definition is None:
            continue

        value = _normalizers[definition.kind](
            definition, raw_value, previous.get(key), now
        )
        if value is not None:
            metrics.append(NormalizedMetric(definition.output_name, value))

    for derived in registry.derived:
        value = derived.fn(sample)
        if value is not None:
            metrics.append(NormalizedMetric(derived.output_name, value))

    metrics.sort(key=lambda metric: metric.name)
    return metrics


def counter_states(
    sample: RawSample, registry: Registry, entity_key: str
) -> Dict[str, CachedCounterState]:
    """Return the counter states to store for the next run.

    Every DELTA / RATE key with a numeric value in ``sample`` is included;
    keys no longer reported by the server are thereby dropped.

    """
    states = {}
    for key, raw_value in sample.items():
        definition = registry.lookup(key)
        if definition is None or not definition.kind.is_counter:
            continue
        value = number(raw_value)
        if value is None:
            continue
        states[key] = CachedCounterState(entity_key, value, sample.timestamp)
    return states
