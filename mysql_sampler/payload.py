"""The document handed to the monitoring agent on stdout.

This mirrors what the agent's integration protocol (version 3) expects::

    {
        "name": "com.newrelic.mysql",
        "protocol_version": "3",
        "integration_version": "1.2.0",
        "data": [
            {
                "entity": {"name": "db1:3306", "type": "node",
                           "id_attributes": []},
                "metrics": [{"event_type": "MysqlSample", ...}],
                "inventory": {"max_connections": {"value": "151"}, ...},
                "events": []
            }
        ]
    }

The local entity, reported when the database is monitored from its own
host, has no "entity" block; the agent attaches it to the host.

"""
from __future__ import annotations

import json
import logging
from typing import Any
from typing import Dict
from typing import IO
from typing import List
from typing import Optional

from . import exc

log = logging.getLogger(__name__)

PROTOCOL_VERSION = "3"


class Inventory:
    __slots__ = ("items",)

    items: Dict[str, Dict[str, Any]]

    def __init__(self):
        self.items = {}

    def set_item(self, key: str, field: str, value: Any) -> None:
        self.items.setdefault(key, {})[field] = value

    def _asdict(self):
        return {key: dict(fields) for key, fields in self.items.items()}


class MetricSet:
    """One sample event; attributes are set on it like any other value."""

    __slots__ = ("event_type", "metrics")

    metrics: Dict[str, Any]

    def __init__(self, event_type: str, **attributes: Any):
        self.event_type = event_type
        self.metrics = {"event_type": event_type}
        for name, value in attributes.items():
            self.set_metric(name, value)

    def set_metric(self, name: str, value: Any) -> None:
        if name == "event_type":
            raise ValueError("event_type can't be overwritten")
        self.metrics[name] = value

    def __getitem__(self, name):
        return self.metrics[name]

    def __contains__(self, name):
        return name in self.metrics

    def _asdict(self):
        return dict(self.metrics)


class Entity:
    __slots__ = ("name", "type", "inventory", "metric_sets", "events")

    name: Optional[str]
    type: Optional[str]
    metric_sets: List[MetricSet]

    def __init__(self, name: Optional[str] = None, type_: Optional[str] = None):
        self.name = name
        self.type = type_
        self.inventory = Inventory()
        self.metric_sets = []
        self.events = []

    @property
    def is_local(self) -> bool:
        return self.name is None

    @property
    def key(self) -> str:
        """Identity used to namespace this entity's cached samples."""

        return "local" if self.is_local else self.name

    def new_metric_set(self, event_type: str, **attributes: Any) -> MetricSet:
        metric_set = MetricSet(event_type, **attributes)
        self.metric_sets.append(metric_set)
        return metric_set

    def _asdict(self):
        d: Dict[str, Any] = {}
        if not self.is_local:
            d["entity"] = {
                "name": self.name,
                "type": self.type,
                "id_attributes": [],
            }
        d["metrics"] = [ms._asdict() for ms in self.metric_sets]
        d["inventory"] = self.inventory._asdict()
        d["events"] = list(self.events)
        return d


class Integration:
    __slots__ = ("name", "version", "entities", "_local")

    entities: List[Entity]

    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version
        self.entities = []
        self._local = None

    def local_entity(self) -> Entity:
        if self._local is None:
            self._local = Entity()
            self.entities.append(self._local)
        return self._local

    def entity(self, name: str, type_: str) -> Entity:
        if not name or not type_:
            raise ValueError("remote entities need a name and a type")
        for entity in self.entities:
            if entity.name == name and entity.type == type_:
                return entity
        entity = Entity(name, type_)
        self.entities.append(entity)
        return entity

    def _asdict(self):
        return {
            "name": self.name,
            "protocol_version": PROTOCOL_VERSION,
            "integration_version": self.version,
            "data": [entity._asdict() for entity in self.entities],
        }

    def publish(self, stream: IO[str], pretty: bool = False) -> None:
        """Write the document to ``stream`` as one JSON line.

        Raises :class:`.exc.PublishError` if it can't be serialized or
        written.

        """
        try:
            document = json.dumps(
                self._asdict(),
                indent=2 if pretty else None,
                sort_keys=True,
                allow_nan=False,
            )
            stream.write(document + "\n")
            stream.flush()
        except (OSError, TypeError, ValueError) as err:
            raise exc.PublishError(
                "could not publish %s payload: %s" % (self.name, err)
            ) from err
        log.debug("published %d entities", len(self.entities))
