"""Health Metric Bank MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from hmb.core.config.settings import get_settings
from hmb.core.storage.database import MetricDatabase
from hmb.core.storage.encryption import EncryptionError, FieldEncryptor
from hmb.domains.metrics.discovery import DiscoveryService
from hmb.domains.metrics.mapper import MetricMapper
from hmb.domains.metrics.query import MetricQueryEngine
from hmb.domains.metrics.registry import MetricSchemaRegistry
from hmb.domains.metrics.resources.schemas import register_metric_schema_resources
from hmb.domains.metrics.router import StoreRouter
from hmb.domains.metrics.service import MetricService
from hmb.domains.metrics.tools.metric_tools import register_metric_tools
from hmb.domains.metrics.writer import UpsertWriter

logger = logging.getLogger(__name__)


def build_service(
    database: MetricDatabase,
    *,
    encryptor: FieldEncryptor | None = None,
    timeout: float | None = None,
) -> tuple[MetricService, MetricSchemaRegistry]:
    """Wire registry, router, mapper, writer, query engine and discovery."""
    registry = MetricSchemaRegistry()
    router = StoreRouter(database, registry, encryptor)
    service = MetricService(
        MetricMapper(registry),
        UpsertWriter(router, timeout=timeout),
        MetricQueryEngine(router),
        DiscoveryService(router, registry, timeout=timeout),
        timeout=timeout,
    )
    return service, registry


def create_app(*, database_override: MetricDatabase | None = None) -> FastMCP:
    """Create and configure the Health Metric Bank MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Initializes the metric database (and field encryption, if configured)
    3. Wires the metric engine into a MetricService
    4. Registers all tools and resources
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        "Health Metric Bank",
        instructions=(
            "Stores health metrics exported by devices and apps, one store per "
            "metric type, and serves them back filtered by date range and source."
        ),
    )

    # --- Initialize encryption ---
    encryptor: FieldEncryptor | None = None
    if settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
        except EncryptionError as exc:
            logger.error("Invalid ENCRYPTION_KEY: %s", exc)
            raise
        logger.info("Field encryption enabled")
    else:
        logger.info("No ENCRYPTION_KEY configured; metric fields stored as plain JSON")

    # --- Initialize storage ---
    if database_override is not None:
        database = database_override
    else:
        database = MetricDatabase(settings.db_path)
        database.initialize()
    logger.info("Metric database ready (schema v%d)", database.get_schema_version())

    service, registry = build_service(
        database, encryptor=encryptor, timeout=settings.storage_timeout_seconds
    )

    # --- Register tools ---
    register_metric_tools(server, service)
    logger.info("Metric tools registered")

    # --- Register resources ---
    register_metric_schema_resources(server, registry)

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this attribute is accessed (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
