"""
Core domain package.

This package contains the persistence layer (system DB, per-user music DBs and
their pools) and the error types shared by the ingestion pipeline. It is kept
free of any web/HTTP concerns.

Consumers should usually import from the specific module they need
(e.g. `tunecellar.core.user_db`).
"""

from __future__ import annotations

__all__: list[str] = [
    "CoreError",
    "IngestError",
    "PathError",
    "PoolClosedError",
    "ReconciliationError",
    "RelocationError",
    "TagReadError",
]


class CoreError(Exception):
    """Base class for core-layer exceptions."""


class PoolClosedError(CoreError):
    """Raised when a connection is requested from a closed pool or registry."""


class IngestError(CoreError):
    """Base class for failures that abort the ingestion of a single upload."""


class PathError(IngestError):
    """Raised when a virtual path (or one of its segments) is malformed."""


class TagReadError(IngestError):
    """Raised when a tag block cannot be parsed."""


class RelocationError(IngestError):
    """Raised when the staged file cannot be moved into permanent storage."""


class ReconciliationError(IngestError):
    """
    Raised when the database committed but the file rename failed afterwards.

    The track row exists without a backing file and needs manual reconciliation.
    """

    def __init__(self, message: str, *, user: str, track_id: int) -> None:
        super().__init__(message)
        self.user = user
        self.track_id = track_id
