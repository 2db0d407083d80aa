"""MCP resources for metric schema discovery."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from fastmcp import FastMCP

if TYPE_CHECKING:
    from hmb.domains.metrics.registry import MetricSchemaRegistry


def register_metric_schema_resources(mcp: FastMCP, registry: MetricSchemaRegistry) -> None:
    """Register the known-schema listing on the MCP server."""

    @mcp.resource("metrics://schemas")
    def metric_schemas_resource() -> str:
        """Describe the statically known metric types and their canonical fields."""
        schemas = registry.known()
        return json.dumps(
            {
                "schema_count": len(schemas),
                "schemas": [
                    {
                        "type_id": s.type_id,
                        "store": s.store_name,
                        "fields": list(s.field_names),
                    }
                    for s in schemas
                ],
                "note": "Any other metric name is stored as-is in its own generic store.",
            },
            indent=2,
        )
