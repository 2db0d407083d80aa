"""Discovery — which metric types hold data, and which sources have reported."""

from __future__ import annotations

import asyncio
import logging

from hmb.domains.metrics.registry import RESERVED_PREFIX, MetricSchemaRegistry
from hmb.domains.metrics.router import StoreRouter

logger = logging.getLogger(__name__)


class DiscoveryService:
    """Enumerates stores and observed sources.

    ``list_sources`` only scans the statically known stores (heart rate,
    sleep, blood pressure). Sources that only ever reported generic metric
    types are not listed.
    """

    def __init__(
        self,
        router: StoreRouter,
        registry: MetricSchemaRegistry,
        *,
        timeout: float | None = None,
    ) -> None:
        self._router = router
        self._registry = registry
        self._timeout = timeout

    def list_available_types(self) -> list[str]:
        """Sorted ids of every store holding data, reserved stores excluded."""
        available: set[str] = set()
        for entry in self._router.catalog():
            if entry.type_id.startswith(RESERVED_PREFIX):
                continue
            store = self._router.lookup(entry.type_id)
            if store is not None and store.has_data():
                available.add(entry.type_id)
        return sorted(available)

    async def list_sources(self) -> list[str]:
        """Sorted union of sources across the known stores, looked up concurrently."""
        type_ids = [schema.type_id for schema in self._registry.known()]
        results = await asyncio.gather(
            *(
                asyncio.wait_for(asyncio.to_thread(self._sources_of, type_id), timeout=self._timeout)
                for type_id in type_ids
            )
        )
        combined = {source for sources in results for source in sources}
        logger.debug("Found %d sources across %s", len(combined), type_ids)
        return sorted(combined)

    def _sources_of(self, type_id: str) -> list[str]:
        store = self._router.lookup(type_id)
        return store.distinct_sources() if store is not None else []
