"""Metric schema registry — static lookup from metric-type id to canonical shape."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from enum import Enum

from hmb.domains.metrics.models import (
    BaseMetric,
    BloodPressureMetric,
    GenericMetric,
    HeartRateMetric,
    SleepMetric,
)

logger = logging.getLogger(__name__)

HEART_RATE = "HeartRate"
BLOOD_PRESSURE = "BloodPressure"
SLEEP_ANALYSIS = "SleepAnalysis"

# Store names with this prefix are reserved and never listed
RESERVED_PREFIX = "system."


class MetricKind(str, Enum):
    KNOWN = "known"
    GENERIC = "generic"


@dataclass(frozen=True)
class MetricSchema:
    """Canonical shape of a metric type.

    ``store_name`` is the statically bound table for known types and None
    for generic types, whose table is assigned when the store is created.
    """

    type_id: str
    kind: MetricKind
    entity_type: type[BaseMetric]
    store_name: str | None = None

    @property
    def is_known(self) -> bool:
        return self.kind is MetricKind.KNOWN

    @property
    def field_names(self) -> tuple[str, ...]:
        """Fixed field names of the entity, empty for generic schemas."""
        if not self.is_known:
            return ()
        return tuple(f.name for f in fields(self.entity_type))


_KNOWN_SCHEMAS = (
    MetricSchema(HEART_RATE, MetricKind.KNOWN, HeartRateMetric, "heart_rate"),
    MetricSchema(BLOOD_PRESSURE, MetricKind.KNOWN, BloodPressureMetric, "blood_pressure"),
    MetricSchema(SLEEP_ANALYSIS, MetricKind.KNOWN, SleepMetric, "sleep_analysis"),
)


class MetricSchemaRegistry:
    """Read-only registry of the statically known metric schemas.

    Lookups of any other type id return a generic schema for that exact id.
    Ids are compared exactly; ``"heartrate"`` is not ``"HeartRate"``.
    """

    def __init__(self, schemas: tuple[MetricSchema, ...] = _KNOWN_SCHEMAS) -> None:
        self._schemas: dict[str, MetricSchema] = {s.type_id: s for s in schemas}

    def lookup(self, type_id: str) -> MetricSchema:
        """Return the static schema for ``type_id`` or a generic one."""
        schema = self._schemas.get(type_id)
        if schema is not None:
            return schema
        return MetricSchema(type_id, MetricKind.GENERIC, GenericMetric)

    def is_known(self, type_id: str) -> bool:
        return type_id in self._schemas

    def known(self) -> list[MetricSchema]:
        """Return all static schemas."""
        return list(self._schemas.values())
