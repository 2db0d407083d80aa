"""Metric normalization and storage-routing engine."""

from __future__ import annotations

from hmb.domains.metrics.errors import PartialMapError, ValidationError
from hmb.domains.metrics.mapper import MapResult, MetricMapper
from hmb.domains.metrics.registry import MetricKind, MetricSchema, MetricSchemaRegistry

__all__ = [
    "MapResult",
    "MetricKind",
    "MetricMapper",
    "MetricSchema",
    "MetricSchemaRegistry",
    "PartialMapError",
    "ValidationError",
]
