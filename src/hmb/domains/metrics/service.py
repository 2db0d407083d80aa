"""Metric service — the boundary operations of the metric bank.

Every operation returns a result object carrying either data or an error
description; exceptions never escape to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from hmb.domains.metrics.discovery import DiscoveryService
from hmb.domains.metrics.errors import ValidationError
from hmb.domains.metrics.mapper import MetricMapper
from hmb.domains.metrics.models import BaseMetric
from hmb.domains.metrics.query import MetricQueryEngine, QueryFilter
from hmb.domains.metrics.writer import NO_DATA, UpsertWriter

logger = logging.getLogger(__name__)


def _extract_records(batch: Any) -> list[Any]:
    """Pull the record list out of ``{"data": {"metrics": [...]}}``."""
    if batch is None:
        return []
    if not isinstance(batch, Mapping):
        raise ValidationError("Ingestion payload must be an object")
    data = batch.get("data") or {}
    if not isinstance(data, Mapping):
        raise ValidationError("Ingestion payload 'data' must be an object")
    records = data.get("metrics") or []
    if not isinstance(records, list):
        raise ValidationError("Ingestion payload 'data.metrics' must be a list")
    return records


class MetricService:
    """Ingestion, query and discovery entry points.

    Usage::

        service = MetricService(mapper, writer, query_engine, discovery)
        await service.save_metrics({"data": {"metrics": [...]}})
        rows = await service.get_metrics("HeartRate", {"source": "Watch"})
    """

    def __init__(
        self,
        mapper: MetricMapper,
        writer: UpsertWriter,
        query_engine: MetricQueryEngine,
        discovery: DiscoveryService,
        *,
        timeout: float | None = None,
    ) -> None:
        self._mapper = mapper
        self._writer = writer
        self._query = query_engine
        self._discovery = discovery
        self._timeout = timeout

    async def save_metrics(self, batch: Any) -> dict[str, Any]:
        """Map, group by type and upsert a batch of ingestion records.

        Every record is mapped before anything is written, so a record
        without a metric name rejects the whole batch. Per-type writes run
        concurrently; if any fails the response is a single combined error,
        although the other types' writes have already been applied.
        """
        try:
            records = _extract_records(batch)
            if not records:
                return {"metrics": {"success": True, "error": "No metrics data provided"}}

            grouped: dict[str, list[BaseMetric]] = {}
            dropped = 0
            for raw in records:
                result = self._mapper.map(raw)
                grouped.setdefault(result.type_id, []).extend(result.entities)
                dropped += len(result.dropped)

            outcomes = await self._writer.write_batches(grouped)
            failures = [o for o in outcomes if not o.success]
            if failures:
                reasons = "; ".join(f"{o.type_id}: {o.message}" for o in failures)
                return {"metrics": {"success": False, "error": f"Error saving metrics: {reasons}"}}

            empty = [o.type_id for o in outcomes if o.status == NO_DATA]
            message = f"{len(records)} metrics saved successfully"
            if dropped:
                message += f" ({dropped} samples dropped)"
            if empty:
                message += f"; no data for {', '.join(empty)}"
            return {"metrics": {"success": True, "message": message}}
        except Exception as exc:
            logger.exception("Error saving metrics")
            return {"metrics": {"success": False, "error": f"Error saving metrics: {exc}"}}

    async def get_metrics(
        self, type_id: str, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]] | dict[str, str]:
        """Query one metric type; returns the rows or ``{"error": ...}``."""
        try:
            flt = QueryFilter.from_params(params)
            return await asyncio.wait_for(
                asyncio.to_thread(self._query.query, type_id, flt), timeout=self._timeout
            )
        except Exception as exc:
            logger.exception("Error getting metrics for %r", type_id)
            return {"error": f"Error getting metrics: {exc}"}

    async def get_sources(self) -> dict[str, Any]:
        """Sources seen across the known stores: ``{"sources": [...]}``."""
        try:
            return {"sources": await self._discovery.list_sources()}
        except Exception as exc:
            logger.exception("Error getting sources")
            return {"error": f"Error getting sources: {exc}"}

    async def get_available_metrics(self) -> dict[str, Any]:
        """Metric types holding data: ``{"metrics": [...]}``."""
        try:
            metrics = await asyncio.wait_for(
                asyncio.to_thread(self._discovery.list_available_types), timeout=self._timeout
            )
            return {"metrics": metrics}
        except Exception as exc:
            logger.exception("Error getting available metrics")
            return {"error": f"Error getting available metrics: {exc}"}
