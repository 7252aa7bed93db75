"""
Internal DB subpackage for Tunecellar.

Split into focused units: models, schema/migrations, connection pools and query
groups. `UserDb` (system DB facade) lives in `tunecellar.core.user_db`.
"""

from __future__ import annotations

# Models / DTOs
from .models import (
    AlbumRow,
    ArtistRow,
    DirectoryRow,
    LibraryEntry,
    PendingUpload,
    TrackRow,
)

# Pools
from .pool import PoolRegistry, SqlitePool

# Schema / migrations
from .schema import ensure_music_schema, ensure_user_schema

__all__ = [
    # models
    "AlbumRow",
    "ArtistRow",
    "DirectoryRow",
    "LibraryEntry",
    "PendingUpload",
    "TrackRow",
    # pools
    "PoolRegistry",
    "SqlitePool",
    # schema
    "ensure_music_schema",
    "ensure_user_schema",
]
