"""Storage router — resolves a metric-type id to its store, creating it on first use."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from hmb.core.storage.database import DatabaseError, MetricDatabase, StorageUnavailableError
from hmb.core.storage.encryption import FieldEncryptor
from hmb.core.storage.store import MetricStore
from hmb.domains.metrics.registry import MetricSchemaRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    """One row of the store catalog."""

    type_id: str
    table_name: str
    kind: str
    created_at: str


class StoreRouter:
    """Maps metric-type ids to store handles.

    Known types bind to their fixed tables; any other id gets a generic
    table named ``metric_store_<n>`` recorded in the ``metric_stores``
    catalog. Resolution is idempotent: the catalog holds one row per id and
    handles are cached for the process lifetime. The cache lock makes
    concurrent first resolutions of an unseen id create a single store.

    Usage::

        router = StoreRouter(db, MetricSchemaRegistry())
        store = router.resolve("Steps")
        store.upsert_many([...])
    """

    def __init__(
        self,
        database: MetricDatabase,
        registry: MetricSchemaRegistry,
        encryptor: FieldEncryptor | None = None,
    ) -> None:
        self._db = database
        self._registry = registry
        self._enc = encryptor
        self._stores: dict[str, MetricStore] = {}
        self._lock = threading.Lock()

    def resolve(self, type_id: str) -> MetricStore:
        """Return the store for ``type_id``, creating it if absent.

        Raises:
            StorageUnavailableError: If the store cannot be created.
        """
        with self._lock:
            store = self._stores.get(type_id)
            if store is not None:
                return store
            try:
                store = self._create(type_id)
            except StorageUnavailableError:
                raise
            except DatabaseError as exc:
                raise StorageUnavailableError(
                    f"Cannot create store for {type_id!r}: {exc}"
                ) from exc
            self._stores[type_id] = store
            return store

    def lookup(self, type_id: str) -> MetricStore | None:
        """Return the store for ``type_id`` if it exists, without creating one."""
        with self._lock:
            store = self._stores.get(type_id)
        if store is not None:
            return store
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM metric_stores WHERE type_id = ?", (type_id,)
            ).fetchone()
        if row is None:
            return None
        return self.resolve(type_id)

    def catalog(self) -> list[CatalogEntry]:
        """Return every catalog entry in creation order."""
        with self._db.transaction() as conn:
            rows = conn.execute(
                "SELECT type_id, table_name, kind, created_at FROM metric_stores ORDER BY id"
            ).fetchall()
        return [
            CatalogEntry(
                type_id=row["type_id"],
                table_name=row["table_name"],
                kind=row["kind"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _create(self, type_id: str) -> MetricStore:
        """Register ``type_id`` in the catalog (if new) and ensure its table."""
        schema = self._registry.lookup(type_id)

        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT table_name FROM metric_stores WHERE type_id = ?", (type_id,)
            ).fetchone()
            if row is not None:
                table_name = row["table_name"]
                created = False
            elif schema.store_name is not None:
                table_name = schema.store_name
                conn.execute(
                    "INSERT INTO metric_stores (type_id, table_name, kind) VALUES (?, ?, ?)",
                    (type_id, table_name, schema.kind.value),
                )
                created = True
            else:
                cursor = conn.execute(
                    "INSERT INTO metric_stores (type_id, table_name, kind) VALUES (?, '', ?)",
                    (type_id, schema.kind.value),
                )
                table_name = f"metric_store_{cursor.lastrowid}"
                conn.execute(
                    "UPDATE metric_stores SET table_name = ? WHERE id = ?",
                    (table_name, cursor.lastrowid),
                )
                created = True

        store = MetricStore(self._db, type_id, table_name, schema.kind.value, self._enc)
        store.ensure()
        if created:
            logger.info("Created %s store %s for metric type %r", schema.kind.value, table_name, type_id)
        return store
