"""Canonical metric entities.

Every entity carries the natural key (``source``, ``date``). Known metric
types add a fixed field set; unknown types carry an open field map.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any


@dataclass
class BaseMetric:
    """Canonical entity: one sample from one source at one instant."""

    source: str
    date: str  # normalized UTC timestamp, see dates.format_date

    def to_record(self) -> dict[str, Any]:
        """Flatten to a stored field map, omitting unset (None) fields."""
        record: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                record[f.name] = value
        return record


@dataclass
class HeartRateMetric(BaseMetric):
    bpm: float | None = None
    min_bpm: float | None = None
    max_bpm: float | None = None
    units: str = "count/min"


@dataclass
class BloodPressureMetric(BaseMetric):
    systolic: float | None = None
    diastolic: float | None = None
    pulse: float | None = None
    units: str = "mmHg"


@dataclass
class SleepMetric(BaseMetric):
    """Sleep stage durations in hours; stage boundaries as stored timestamps."""

    total_sleep: float | None = None
    core: float | None = None
    deep: float | None = None
    rem: float | None = None
    awake: float | None = None
    in_bed: float | None = None
    sleep_start: str | None = None
    sleep_end: str | None = None
    in_bed_start: str | None = None
    in_bed_end: str | None = None
    units: str = "hr"


@dataclass
class GenericMetric(BaseMetric):
    """Entity of a metric type with no static schema; fields pass through."""

    values: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        record = dict(self.values)
        record["source"] = self.source
        record["date"] = self.date
        return record
