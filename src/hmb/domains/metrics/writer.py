"""Upsert writer — idempotent per-type batch writes keyed by (source, date)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from hmb.core.storage.database import DatabaseError
from hmb.core.storage.encryption import EncryptionError
from hmb.domains.metrics.models import BaseMetric
from hmb.domains.metrics.router import StoreRouter

logger = logging.getLogger(__name__)

WRITTEN = "written"
NO_DATA = "no_data"
FAILED = "failed"


@dataclass(frozen=True)
class WriteOutcome:
    """Result of writing one type's batch."""

    type_id: str
    status: str  # 'written' | 'no_data' | 'failed'
    count: int = 0
    message: str = ""

    @property
    def success(self) -> bool:
        """No-data batches are not failures."""
        return self.status != FAILED


class UpsertWriter:
    """Writes canonical entities into their type's store.

    Each entity is matched on ``(source, date)``: an existing row is fully
    replaced, a missing one inserted. The writer is handed one type at a
    time; grouping records by type is the caller's job.
    """

    def __init__(self, router: StoreRouter, *, timeout: float | None = None) -> None:
        """Initialize the writer.

        Args:
            router: Resolves type ids to stores.
            timeout: Seconds allowed per batch in :meth:`write_batches`;
                None waits indefinitely.
        """
        self._router = router
        self._timeout = timeout

    def write(self, type_id: str, entities: Sequence[BaseMetric]) -> WriteOutcome:
        """Upsert one type's entities. Storage failures become a failed outcome."""
        if not entities:
            logger.warning("No data to write for %r", type_id)
            return WriteOutcome(type_id, NO_DATA, 0, f"No data for {type_id}")

        try:
            store = self._router.resolve(type_id)
            count = store.upsert_many(entity.to_record() for entity in entities)
        except (DatabaseError, EncryptionError) as exc:
            logger.error("Failed to write %d %r entities: %s", len(entities), type_id, exc)
            return WriteOutcome(type_id, FAILED, 0, str(exc))

        logger.info("Wrote %d %r entities to %s", count, type_id, store.table_name)
        return WriteOutcome(type_id, WRITTEN, count, f"{count} {type_id} entries saved")

    async def write_batches(
        self, batches: Mapping[str, Sequence[BaseMetric]]
    ) -> list[WriteOutcome]:
        """Write every type's batch concurrently and wait for all of them.

        A batch that fails or exceeds the timeout is reported as failed;
        the others still complete. Outcomes follow the order of ``batches``.

        A timeout only stops waiting: the worker thread cannot be cancelled,
        so a timed-out batch may still be committed afterwards. Re-sending it
        is safe because writes are keyed upserts.
        """
        type_ids = list(batches)
        results = await asyncio.gather(
            *(self._write_bounded(type_id, batches[type_id]) for type_id in type_ids),
            return_exceptions=True,
        )

        outcomes: list[WriteOutcome] = []
        for type_id, result in zip(type_ids, results):
            if isinstance(result, WriteOutcome):
                outcomes.append(result)
            elif isinstance(result, (TimeoutError, asyncio.TimeoutError)):
                logger.error("Writing %r timed out after %ss", type_id, self._timeout)
                message = f"timed out after {self._timeout}s (write may still complete)"
                outcomes.append(WriteOutcome(type_id, FAILED, 0, message))
            else:
                logger.error("Writing %r failed: %r", type_id, result)
                outcomes.append(WriteOutcome(type_id, FAILED, 0, str(result)))
        return outcomes

    async def _write_bounded(self, type_id: str, entities: Sequence[BaseMetric]) -> WriteOutcome:
        return await asyncio.wait_for(
            asyncio.to_thread(self.write, type_id, entities), timeout=self._timeout
        )
