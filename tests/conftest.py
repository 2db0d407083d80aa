"""Shared test fixtures for Health Metric Bank tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DB_PATH", str(tmp_path / "metrics.db"))
    monkeypatch.setenv("STORAGE_TIMEOUT_SECONDS", "10")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def metric_db():
    """Create an in-memory MetricDatabase for testing."""
    from hmb.core.storage.database import MetricDatabase

    db = MetricDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def registry():
    from hmb.domains.metrics.registry import MetricSchemaRegistry

    return MetricSchemaRegistry()


@pytest.fixture
def router(metric_db, registry):
    """StoreRouter backed by in-memory SQLite, no encryption."""
    from hmb.domains.metrics.router import StoreRouter

    return StoreRouter(metric_db, registry)


@pytest.fixture
def mapper(registry):
    from hmb.domains.metrics.mapper import MetricMapper

    return MetricMapper(registry)


@pytest.fixture
def writer(router):
    from hmb.domains.metrics.writer import UpsertWriter

    return UpsertWriter(router, timeout=10)


@pytest.fixture
def query_engine(router):
    from hmb.domains.metrics.query import MetricQueryEngine

    return MetricQueryEngine(router)


@pytest.fixture
def discovery(router, registry):
    from hmb.domains.metrics.discovery import DiscoveryService

    return DiscoveryService(router, registry, timeout=10)


@pytest.fixture
def metric_service(metric_db):
    """Fully wired MetricService over in-memory SQLite."""
    from hmb.core.server.app import build_service

    service, _ = build_service(metric_db, timeout=10)
    return service
