"""MCP tools for metric ingestion, queries and discovery.

Each tool wraps one :class:`MetricService` operation and returns its result
as JSON text.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from hmb.domains.metrics.service import MetricService

logger = logging.getLogger(__name__)


def register_metric_tools(mcp: FastMCP, service: MetricService) -> None:
    """Register metric bank tools on the MCP server."""

    @mcp.tool
    async def ingest_metrics(
        ctx: Context,
        payload: dict[str, Any],
    ) -> str:
        """Store a batch of health metrics exported by a device or app.

        Samples are upserted per metric type keyed by (source, date), so
        re-sending a sample replaces the stored one.

        Args:
            payload: Export in the form {"data": {"metrics": [{"name": ...,
                "units": ..., "data": [{"source": ..., "date": ..., ...}]}]}}.
        """
        start_time = time.monotonic()
        result = await service.save_metrics(payload)
        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info("ingest_metrics finished in %.1f ms: %s", elapsed_ms, result["metrics"])
        return json.dumps(result)

    @mcp.tool
    async def get_metrics(
        ctx: Context,
        selected_metric: str,
        from_date: str = "",
        to_date: str = "",
        source: str = "",
        include: str = "",
        exclude: str = "",
    ) -> str:
        """Read stored samples of one metric type.

        Args:
            selected_metric: Metric type name, e.g. 'HeartRate' or 'StepCount'.
            from_date: Inclusive lower bound. Ignored unless to_date also parses.
            to_date: Inclusive upper bound. Ignored unless from_date also parses.
            source: Comma-separated source names; '$__all' or 'All' for every source.
            include: Comma-separated fields to keep (source and date are always kept).
            exclude: Comma-separated fields to drop, applied after include.
        """
        params = {
            "from": from_date or None,
            "to": to_date or None,
            "source": source or None,
            "include": include or None,
            "exclude": exclude or None,
        }
        result = await service.get_metrics(selected_metric, params)
        return json.dumps(result)

    @mcp.tool
    async def get_sources(ctx: Context) -> str:
        """List the devices/apps that have reported heart rate, sleep or blood pressure."""
        return json.dumps(await service.get_sources())

    @mcp.tool
    async def get_available_metrics(ctx: Context) -> str:
        """List the metric types that currently hold data."""
        return json.dumps(await service.get_available_metrics())
