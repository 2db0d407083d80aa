"""Store handle — keyed persistence for one metric type's table.

Each store is a SQLite table whose rows are flat field maps keyed by the
natural key ``(source, date)``. Dates are stored as fixed-width UTC strings,
so plain string comparison is chronological comparison.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from hmb.core.storage.database import STORE_TABLE_DDL, MetricDatabase
from hmb.core.storage.encryption import FieldEncryptor

logger = logging.getLogger(__name__)

KEY_FIELDS = ("source", "date")


class MetricStore:
    """Handle to the persistent collection of one metric type.

    Handles are created and cached by the store router; they hold no
    row state of their own and are safe to share across threads.
    """

    def __init__(
        self,
        database: MetricDatabase,
        type_id: str,
        table_name: str,
        kind: str,
        encryptor: FieldEncryptor | None = None,
    ) -> None:
        self._db = database
        self._type_id = type_id
        self._table = table_name
        self._kind = kind
        self._enc = encryptor

    def __repr__(self) -> str:
        return f"<MetricStore {self._type_id!r} table={self._table} kind={self._kind}>"

    @property
    def type_id(self) -> str:
        return self._type_id

    @property
    def table_name(self) -> str:
        return self._table

    @property
    def kind(self) -> str:
        return self._kind

    def ensure(self) -> None:
        """Create the backing table if it does not exist yet."""
        with self._db.transaction() as conn:
            conn.executescript(STORE_TABLE_DDL.format(table=self._table))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_many(self, records: Iterable[Mapping[str, Any]]) -> int:
        """Insert or fully replace records keyed by ``(source, date)``.

        Every non-key field of an existing row is replaced by the incoming
        record's fields; nothing is merged. All rows commit together.

        Returns:
            Number of records written.
        """
        now = datetime.now(timezone.utc).isoformat()
        rows = [
            (record["source"], record["date"], self._encode(_non_key_fields(record)), now)
            for record in records
        ]
        if not rows:
            return 0

        with self._db.transaction() as conn:
            conn.executemany(
                f"""INSERT INTO "{self._table}" (source, date, fields, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(source, date) DO UPDATE SET
                        fields = excluded.fields,
                        updated_at = excluded.updated_at""",
                rows,
            )
        logger.debug("Upserted %d rows into %s", len(rows), self._table)
        return len(rows)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find(
        self,
        *,
        since: str | None = None,
        until: str | None = None,
        sources: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Query records with optional filters.

        Args:
            since: Normalized timestamp lower bound (inclusive).
            until: Normalized timestamp upper bound (inclusive).
            sources: Allowed sources. One entry matches by equality,
                several by membership; None or empty disables the filter.

        Returns:
            Flat field maps ordered by date, then source.
        """
        conditions: list[str] = []
        params: list[Any] = []

        if since is not None:
            conditions.append("date >= ?")
            params.append(since)
        if until is not None:
            conditions.append("date <= ?")
            params.append(until)
        if sources:
            if len(sources) == 1:
                conditions.append("source = ?")
                params.append(sources[0])
            else:
                placeholders = ",".join("?" for _ in sources)
                conditions.append(f"source IN ({placeholders})")
                params.extend(sources)

        query = f'SELECT source, date, fields FROM "{self._table}"'
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY date, source"

        with self._db.transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def distinct_sources(self) -> list[str]:
        """Return the distinct source values stored, sorted."""
        with self._db.transaction() as conn:
            rows = conn.execute(
                f'SELECT DISTINCT source FROM "{self._table}" ORDER BY source'
            ).fetchall()
        return [row[0] for row in rows]

    def count(self) -> int:
        """Return the number of stored records."""
        with self._db.transaction() as conn:
            row = conn.execute(f'SELECT COUNT(*) FROM "{self._table}"').fetchone()
        return row[0]

    def has_data(self) -> bool:
        """Whether the store holds at least one record."""
        with self._db.transaction() as conn:
            row = conn.execute(f'SELECT 1 FROM "{self._table}" LIMIT 1').fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _encode(self, fields: dict[str, Any]) -> str:
        if self._enc is not None:
            return self._enc.encrypt(fields)
        return json.dumps(fields, separators=(",", ":"), default=str)

    def _decode(self, blob: str) -> dict[str, Any]:
        if self._enc is not None:
            return self._enc.decrypt(blob)
        return json.loads(blob) if blob else {}

    def _row_to_record(self, row: Any) -> dict[str, Any]:
        record: dict[str, Any] = {"source": row["source"], "date": row["date"]}
        record.update(self._decode(row["fields"]))
        return record


def _non_key_fields(record: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in record.items() if k not in KEY_FIELDS}
