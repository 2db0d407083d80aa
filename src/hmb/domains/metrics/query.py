"""Query engine — date-range, source and projection queries over any store."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from hmb.core.storage.store import KEY_FIELDS
from hmb.domains.metrics.dates import normalize_date
from hmb.domains.metrics.errors import ValidationError
from hmb.domains.metrics.router import StoreRouter

logger = logging.getLogger(__name__)

# Source values meaning "every source"
ALL_SOURCES = ("$__all", "All")


def _split(value: str | Iterable[str] | None) -> list[str]:
    """Split a comma-separated string (or list of them) into trimmed, non-empty parts."""
    if value is None:
        return []
    parts = value.split(",") if isinstance(value, str) else [p for v in value for p in str(v).split(",")]
    return [p.strip() for p in parts if p.strip()]


@dataclass(frozen=True)
class QueryFilter:
    """Filter and projection parameters of a metric query.

    Values are kept raw; interpretation happens in the query engine so that
    an unparseable bound simply disables the date filter.
    """

    from_: str | None = None
    to: str | None = None
    source: str | None = None
    include: str | list[str] | None = None
    exclude: str | list[str] | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> QueryFilter:
        """Build a filter from request parameters (``from``, ``to``, ``source``, ...)."""
        params = params or {}
        return cls(
            from_=params.get("from"),
            to=params.get("to"),
            source=params.get("source"),
            include=params.get("include"),
            exclude=params.get("exclude"),
        )

    def date_bounds(self) -> tuple[str, str] | None:
        """Both bounds normalized, or None unless both parse."""
        since = normalize_date(self.from_)
        until = normalize_date(self.to)
        if since is None or until is None:
            return None
        return since, until

    def sources(self) -> list[str]:
        """Allowed sources; empty means no source filter."""
        if self.source is None or self.source in ALL_SOURCES:
            return []
        return [s for s in _split(self.source) if s not in ALL_SOURCES]


def project(record: Mapping[str, Any], include: Any = None, exclude: Any = None) -> dict[str, Any]:
    """Apply include then exclude to one result; key fields are always kept."""
    keep = set(_split(include))
    drop = set(_split(exclude)) - set(KEY_FIELDS)

    projected = dict(record)
    if keep:
        projected = {k: v for k, v in projected.items() if k in keep or k in KEY_FIELDS}
    if drop:
        projected = {k: v for k, v in projected.items() if k not in drop}
    return projected


class MetricQueryEngine:
    """Builds and runs filtered queries against the store of a metric type.

    Usage::

        engine = MetricQueryEngine(router)
        rows = engine.query("HeartRate", QueryFilter(source="Watch", include="bpm"))
    """

    def __init__(self, router: StoreRouter) -> None:
        self._router = router

    def query(self, type_id: str, flt: QueryFilter | None = None) -> list[dict[str, Any]]:
        """Return the matching entities of ``type_id`` as field maps.

        A type that was never written yields an empty list; its store is
        created on this first reference.

        Raises:
            ValidationError: If ``type_id`` is empty.
            StorageUnavailableError: If the store cannot be reached.
        """
        if not type_id:
            raise ValidationError("No metric selected")
        flt = flt or QueryFilter()

        bounds = flt.date_bounds()
        since, until = bounds if bounds is not None else (None, None)
        sources = flt.sources()

        store = self._router.resolve(type_id)
        records = store.find(since=since, until=until, sources=sources)
        logger.debug(
            "Query %r (range=%s, sources=%s) matched %d rows",
            type_id, bounds, sources or "all", len(records),
        )

        if flt.include or flt.exclude:
            records = [project(r, flt.include, flt.exclude) for r in records]
        return records
