"""Integration tests for the Health Metric Bank MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from hmb.core.server.app import create_app


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


ALL_EXPECTED_TOOLS = [
    "ingest_metrics",
    "get_metrics",
    "get_sources",
    "get_available_metrics",
]

PAYLOAD = {
    "data": {
        "metrics": [
            {
                "name": "HeartRate",
                "units": "count/min",
                "data": [{"source": "Watch", "date": "2024-01-01 08:00:00 +0000", "Avg": 62}],
            },
            {
                "name": "StepCount",
                "units": "count",
                "data": [{"source": "Phone", "date": "2024-01-01 00:00:00 +0000", "qty": 4200}],
            },
        ]
    }
}


@pytest.fixture
def client(metric_db):
    """Create an MCP client connected to a server backed by in-memory SQLite."""
    mcp = create_app(database_override=metric_db)
    return Client(mcp)


def test_server_starts_and_lists_tools(client):
    """Server should start and expose all registered tools."""
    async def _check():
        async with client:
            tools = await client.list_tools()
            tool_names = [t.name for t in tools]
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in tool_names, f"Missing tool: {expected}"
    _run(_check())


def test_ingest_then_query(client):
    """Ingested samples should come back from get_metrics in canonical form."""
    async def _check():
        async with client:
            saved = await client.call_tool("ingest_metrics", {"payload": PAYLOAD})
            assert "2 metrics saved successfully" in str(saved)

            result = await client.call_tool("get_metrics", {"selected_metric": "HeartRate"})
            text = str(result)
            assert "2024-01-01T08:00:00.000Z" in text
            assert "Watch" in text
    _run(_check())


def test_discovery_tools(client):
    """get_available_metrics and get_sources reflect ingested data."""
    async def _check():
        async with client:
            await client.call_tool("ingest_metrics", {"payload": PAYLOAD})

            available = await client.call_tool("get_available_metrics", {})
            assert "HeartRate" in str(available)
            assert "StepCount" in str(available)

            sources = await client.call_tool("get_sources", {})
            assert "Watch" in str(sources)
            assert "Phone" not in str(sources)
    _run(_check())


def test_schema_resource(client):
    """metrics://schemas lists the statically known metric types."""
    async def _check():
        async with client:
            contents = await client.read_resource("metrics://schemas")
            listing = json.loads(contents[0].text)
            type_ids = [entry["type_id"] for entry in listing["schemas"]]
            assert sorted(type_ids) == ["BloodPressure", "HeartRate", "SleepAnalysis"]
    _run(_check())
