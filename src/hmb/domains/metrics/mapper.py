"""Metric mapper — raw device records to canonical entities.

Input follows the Health Auto Export layout::

    {"name": "HeartRate", "units": "count/min",
     "data": [{"source": "Watch", "date": "2024-01-01 08:30:00 -0500", "Avg": 61}]}

``samples`` is accepted in place of ``data``, and a record-level ``source``
is inherited by samples that do not name their own. Blood-pressure samples
may nest several readings under ``readings``; each becomes one entity.

Samples without a usable ``source`` or ``date`` are dropped, never raised:
a malformed sample costs that sample, not the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from hmb.domains.metrics.dates import normalize_date
from hmb.domains.metrics.errors import PartialMapError, ValidationError
from hmb.domains.metrics.models import (
    BaseMetric,
    BloodPressureMetric,
    GenericMetric,
    HeartRateMetric,
    SleepMetric,
)
from hmb.domains.metrics.registry import (
    BLOOD_PRESSURE,
    HEART_RATE,
    SLEEP_ANALYSIS,
    MetricSchema,
    MetricSchemaRegistry,
)

logger = logging.getLogger(__name__)

_KPA_TO_MMHG = 7.50062


@dataclass(frozen=True)
class MapResult:
    """Entities mapped from one record, plus the samples that were dropped."""

    type_id: str
    entities: tuple[BaseMetric, ...]
    dropped: tuple[PartialMapError, ...] = ()

    def __iter__(self) -> Iterator[BaseMetric]:
        return iter(self.entities)

    def __len__(self) -> int:
        return len(self.entities)


@dataclass(frozen=True)
class _Context:
    """Record-level values shared by all samples of a record."""

    source: str | None
    units: str | None


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------

def _num(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _first(sample: Mapping[str, Any], *names: str) -> float | None:
    for name in names:
        value = _num(sample.get(name))
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# Per-type builders
# ---------------------------------------------------------------------------

def _heart_rate(sample: Mapping[str, Any], source: str, date: str, ctx: _Context) -> BaseMetric:
    return HeartRateMetric(
        source=source,
        date=date,
        bpm=_first(sample, "bpm", "Avg", "avg", "qty"),
        min_bpm=_first(sample, "min_bpm", "Min", "min"),
        max_bpm=_first(sample, "max_bpm", "Max", "max"),
    )


def _blood_pressure(sample: Mapping[str, Any], source: str, date: str, ctx: _Context) -> BaseMetric:
    systolic = _first(sample, "systolic")
    diastolic = _first(sample, "diastolic")
    units = sample.get("units") or ctx.units or "mmHg"
    if isinstance(units, str) and units.lower() == "kpa":
        systolic = round(systolic * _KPA_TO_MMHG, 1) if systolic is not None else None
        diastolic = round(diastolic * _KPA_TO_MMHG, 1) if diastolic is not None else None
    return BloodPressureMetric(
        source=source,
        date=date,
        systolic=systolic,
        diastolic=diastolic,
        pulse=_first(sample, "pulse", "heartRate"),
    )


def _sleep(sample: Mapping[str, Any], source: str, date: str, ctx: _Context) -> BaseMetric:
    # Durations are stored in hours
    scale = 1 / 60 if (ctx.units or "").lower() in ("min", "mins", "minutes") else 1.0

    def hours(*names: str) -> float | None:
        value = _first(sample, *names)
        return round(value * scale, 4) if value is not None else None

    return SleepMetric(
        source=source,
        date=date,
        total_sleep=hours("totalSleep", "asleep", "total_sleep"),
        core=hours("core"),
        deep=hours("deep"),
        rem=hours("rem"),
        awake=hours("awake"),
        in_bed=hours("inBed", "in_bed"),
        sleep_start=normalize_date(sample.get("sleepStart")),
        sleep_end=normalize_date(sample.get("sleepEnd")),
        in_bed_start=normalize_date(sample.get("inBedStart")),
        in_bed_end=normalize_date(sample.get("inBedEnd")),
    )


def _generic(sample: Mapping[str, Any], source: str, date: str, ctx: _Context) -> BaseMetric:
    values = {k: v for k, v in sample.items() if k not in ("source", "date")}
    if ctx.units and "units" not in values:
        values["units"] = ctx.units
    return GenericMetric(source=source, date=date, values=values)


_Builder = Callable[[Mapping[str, Any], str, str, _Context], BaseMetric]

_BUILDERS: dict[str, _Builder] = {
    HEART_RATE: _heart_rate,
    BLOOD_PRESSURE: _blood_pressure,
    SLEEP_ANALYSIS: _sleep,
}

# Types whose samples may nest several readings under this key
_NESTED_READINGS: dict[str, str] = {BLOOD_PRESSURE: "readings"}


# ---------------------------------------------------------------------------
# Mapper
# ---------------------------------------------------------------------------

class MetricMapper:
    """Transforms one raw ingestion record into canonical entities.

    Usage::

        mapper = MetricMapper(MetricSchemaRegistry())
        result = mapper.map({"name": "HeartRate", "data": [...]})
        entities, dropped = result.entities, result.dropped
    """

    def __init__(self, registry: MetricSchemaRegistry) -> None:
        self._registry = registry

    def map(self, raw: Any) -> MapResult:
        """Map a raw record to entities of its resolved type.

        Raises:
            ValidationError: If the record is not an object, has no
                non-empty ``name``, or its sample container is not a list.
        """
        if not isinstance(raw, Mapping):
            raise ValidationError("Ingestion record must be an object")
        type_id = raw.get("name")
        if not isinstance(type_id, str) or not type_id:
            raise ValidationError("Ingestion record has no metric name")

        samples = raw["data"] if "data" in raw else raw.get("samples")
        if samples is None:
            samples = []
        if not isinstance(samples, list):
            raise ValidationError(f"Samples of {type_id!r} must be a list")

        schema = self._registry.lookup(type_id)
        ctx = _Context(source=raw.get("source"), units=raw.get("units"))

        entities: list[BaseMetric] = []
        dropped: list[PartialMapError] = []
        for index, sample in enumerate(samples):
            if not isinstance(sample, Mapping):
                dropped.append(PartialMapError(type_id, index, "sample is not an object"))
                continue
            for reading in self._expand(schema, sample):
                if not isinstance(reading, Mapping):
                    dropped.append(PartialMapError(type_id, index, "reading is not an object"))
                    continue
                entity = self._build(schema, reading, ctx)
                if isinstance(entity, str):
                    dropped.append(PartialMapError(type_id, index, entity))
                else:
                    entities.append(entity)

        for err in dropped:
            logger.warning("%s", err)
        return MapResult(type_id, tuple(entities), tuple(dropped))

    @staticmethod
    def _expand(schema: MetricSchema, sample: Mapping[str, Any]) -> Iterator[Any]:
        """Yield one item per reading; nested readings inherit the parent's fields."""
        nested_key = _NESTED_READINGS.get(schema.type_id) if schema.is_known else None
        nested = sample.get(nested_key) if nested_key else None
        if not isinstance(nested, list):
            yield sample
            return

        parent = {k: v for k, v in sample.items() if k != nested_key}
        for reading in nested:
            yield {**parent, **reading} if isinstance(reading, Mapping) else reading

    @staticmethod
    def _build(
        schema: MetricSchema, sample: Mapping[str, Any], ctx: _Context
    ) -> BaseMetric | str:
        """Build one entity, or return the reason it has to be dropped."""
        source = sample.get("source") or ctx.source
        if not isinstance(source, str) or not source.strip():
            return "missing source"
        if sample.get("date") in (None, ""):
            return "missing date"
        date = normalize_date(sample["date"])
        if date is None:
            return f"unparseable date {sample['date']!r}"

        builder = _BUILDERS[schema.type_id] if schema.is_known else _generic
        return builder(sample, source, date, ctx)
