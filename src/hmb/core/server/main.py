"""Health Metric Bank entry point — ``python -m hmb.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address
from pathlib import Path

from hmb.core.config.settings import get_settings
from hmb.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the metric bank MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.hmb_log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    logger = logging.getLogger(__name__)
    if not settings.hmb_allow_insecure_bind and not _is_loopback_host(settings.hmb_host):
        raise RuntimeError(
            "Refusing to bind the metric bank to a non-loopback host without an auth layer. "
            "Set HMB_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting Health Metric Bank server on %s:%d",
        settings.hmb_host,
        settings.hmb_port,
    )
    logger.info(
        "Metric store at %s (fields %s, storage timeout %.1fs)",
        Path(settings.db_path).expanduser(),
        "encrypted" if settings.encryption_key else "plaintext",
        settings.storage_timeout_seconds,
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.hmb_host,
        port=settings.hmb_port,
    )


if __name__ == "__main__":
    run()
