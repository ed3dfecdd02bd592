from __future__ import annotations

from typing import Any
from typing import Iterable
from typing import Mapping
from typing import TYPE_CHECKING

from .metric_types import METRIC_SET_NAME

if TYPE_CHECKING:
    from .normalizer import NormalizedMetric
    from .payload import Entity
    from .payload import Integration
    from .payload import Inventory
    from .payload import MetricSet


NODE_ENTITY_TYPE = "node"


def create_entity(
    integration: Integration,
    remote_monitoring: bool,
    hostname: str,
    port: int,
) -> Entity:
    if remote_monitoring:
        return integration.entity("%s:%s" % (hostname, port), NODE_ENTITY_TYPE)
    return integration.local_entity()


def new_metric_set(entity: Entity, hostname: str, port: int) -> MetricSet:
    return entity.new_metric_set(
        METRIC_SET_NAME, hostname=hostname, port=str(port)
    )


def populate_inventory(inventory: Inventory, rows: Mapping[str, Any]) -> None:
    for key, value in rows.items():
        inventory.set_item(key, "value", value)


def populate_metrics(
    metric_set: MetricSet, metrics: Iterable[NormalizedMetric]
) -> None:
    for metric in metrics:
        metric_set.set_metric(metric.name, metric.value)
