"""Persistence of the previous sample's counters between runs.

Each run of the sampler is its own short-lived process, so the raw counter
values that RATE / DELTA metrics are computed against have to be written
somewhere at the end of one run and read back at the start of the next.

The record for an entity is replaced as a whole on every store.  Entries
older than the TTL are discarded on load, the same way a stale value falls
out of a time bucket.

There is no locking; two runs for the same entity at the same time aren't
supported and the last one to store wins.

"""
from __future__ import annotations

import copy
import json
import logging
import math
import os
import tempfile
import time
from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Union

from . import exc
from .definitions import number

log = logging.getLogger(__name__)

DEFAULT_TTL = 3600
FORMAT_VERSION = 1


class CachedCounterState:
    """The raw value of one counter and when it was observed."""

    __slots__ = ("entity_key", "value", "timestamp")

    entity_key: str
    value: Union[int, float]
    timestamp: float

    def __init__(self, entity_key, value, timestamp):
        self.entity_key = entity_key
        self.value = value
        self.timestamp = timestamp

    def __eq__(self, other):
        if not isinstance(other, CachedCounterState):
            return False
        return [getattr(self, k) for k in self.__slots__] == [
            getattr(other, k) for k in self.__slots__
        ]

    def __repr__(self):
        return "mysql_sampler.CachedCounterState(%s)" % (
            ", ".join("%s=%r" % (k, getattr(self, k)) for k in self.__slots__),
        )


States = Dict[str, CachedCounterState]


def _parse_entry(entry):
    """Return ``(value, timestamp)`` of a stored entry.

    Either is None if missing, not a number, or not finite.

    """
    if not isinstance(entry, dict):
        return None, None
    value = entry.get("value")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        value = None
    else:
        value = number(value)

    timestamp = entry.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        timestamp = None
    elif not math.isfinite(timestamp):
        timestamp = None
    else:
        timestamp = float(timestamp)
    return value, timestamp


class SampleCache:
    """Base for sample caches; subclasses provide ``_read`` / ``_write``.

    The stored document is::

        {
            "version": 1,
            "entities": {
                "<entity key>": {
                    "<raw key>": {"value": 1000, "timestamp": 1700000000.5},
                    ...
                },
                ...
            }
        }

    """

    ttl: float

    def __init__(self, ttl: float = DEFAULT_TTL, log: logging.Logger = log):
        self.ttl = ttl
        self.log = log

    def _read(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError()

    def _write(self, document: Dict[str, Any]) -> None:
        raise NotImplementedError()

    def _expired(self, timestamp: float, now: float) -> bool:
        return now - timestamp > self.ttl

    def _entities(self, document: Optional[Dict[str, Any]]):
        if document is None:
            return {}
        if not isinstance(document, dict) or not isinstance(
            document.get("entities"), dict
        ):
            raise exc.StoreError("sample cache document is malformed")
        if document.get("version") != FORMAT_VERSION:
            raise exc.StoreError(
                "sample cache has unknown format version %r"
                % (document.get("version"),)
            )
        return document["entities"]

    def load(self, entity_key: str, now: Optional[float] = None) -> States:
        """Return the unexpired counter states stored for ``entity_key``.

        Raises :class:`.exc.StoreError` if the cache can't be read or
        doesn't parse; an absent cache or entity is just empty.

        """
        if now is None:
            now = time.time()

        entities = self._entities(self._read())
        record = entities.get(entity_key, {})
        if not isinstance(record, dict):
            raise exc.StoreError(
                "sample cache record for %r is malformed" % entity_key
            )

        states = {}
        for key, entry in record.items():
            value, timestamp = _parse_entry(entry)
            if value is None or timestamp is None:
                raise exc.StoreError(
                    "sample cache entry %r for %r is malformed"
                    % (key, entity_key)
                )
            if self._expired(timestamp, now):
                self.log.debug(
                    "cached value for %s on %s has expired", key, entity_key
                )
                continue
            states[key] = CachedCounterState(entity_key, value, timestamp)
        return states

    def store(
        self,
        entity_key: str,
        states: Mapping[str, CachedCounterState],
        now: Optional[float] = None,
    ) -> None:
        """Replace the record for ``entity_key`` with ``states``.

        Records of other entities are kept unless they have expired
        entirely.  Raises :class:`.exc.StoreError` on failure.

        """
        if now is None:
            now = time.time()

        try:
            entities = self._entities(self._read())
        except exc.StoreError as err:
            self.log.warning("discarding unreadable sample cache: %s", err)
            entities = {}

        pruned = {}
        for other_key, record in entities.items():
            if other_key == entity_key or not isinstance(record, dict):
                continue
            timestamps = [_parse_entry(entry)[1] for entry in record.values()]
            if any(
                timestamp is not None and not self._expired(timestamp, now)
                for timestamp in timestamps
            ):
                pruned[other_key] = record

        pruned[entity_key] = {
            key: {"value": state.value, "timestamp": state.timestamp}
            for key, state in states.items()
        }
        self._write({"version": FORMAT_VERSION, "entities": pruned})


class MemorySampleCache(SampleCache):
    """A sample cache that lives only as long as the object does."""

    def __init__(self, ttl: float = DEFAULT_TTL, log: logging.Logger = log):
        super().__init__(ttl, log)
        self.document = None

    def _read(self):
        return copy.deepcopy(self.document)

    def _write(self, document):
        self.document = copy.deepcopy(document)


class FileSampleCache(SampleCache):
    """A sample cache kept in one JSON file.

    Writes go to a temporary file in the same directory which is flushed to
    disk and then renamed over the cache file, so a process killed halfway
    through leaves either the old file or the new one, never a partial one.

    """

    path: str

    def __init__(
        self, path: str, ttl: float = DEFAULT_TTL, log: logging.Logger = log
    ):
        super().__init__(ttl, log)
        self.path = path

    def _read(self):
        try:
            with open(self.path, "r", encoding="utf-8") as file_:
                return json.load(file_)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as err:
            raise exc.StoreError(
                "could not read sample cache %s: %s" % (self.path, err)
            ) from err

    def _write(self, document):
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=directory,
                prefix=".%s." % os.path.basename(self.path),
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as file_:
                json.dump(document, file_, sort_keys=True)
                file_.flush()
                os.fsync(file_.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as err:
            raise exc.StoreError(
                "could not write sample cache %s: %s" % (self.path, err)
            ) from err
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    self.log.debug(
                        "could not remove %s", tmp_path, exc_info=True
                    )
        self.log.debug("stored sample cache %s", self.path)
