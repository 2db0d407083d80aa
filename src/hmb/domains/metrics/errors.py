"""Error kinds of the metric engine.

Storage failures live with the storage layer
(:class:`hmb.core.storage.database.StorageUnavailableError`).
"""

from __future__ import annotations


class ValidationError(Exception):
    """Raised when an ingestion record or query lacks a required identifying field."""


class PartialMapError(Exception):
    """A sample dropped during mapping.

    Never raised. Instances are collected in ``MapResult.dropped`` so callers
    can count and report the loss.
    """

    def __init__(self, type_id: str, index: int, reason: str) -> None:
        super().__init__(f"{type_id} sample #{index} dropped: {reason}")
        self.type_id = type_id
        self.index = index
        self.reason = reason
