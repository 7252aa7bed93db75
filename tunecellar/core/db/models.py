"""
DB models (DTOs) and small normalization helpers.

This module is intentionally lightweight:
- No DB connection knowledge
- No SQL
- Pure dataclasses + helper functions
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PendingUpload:
    """
    A staged, not-yet-processed upload (system DB).

    `id` doubles as the staging filename.
    """

    id: int
    user: str
    original_path: str


@dataclass(frozen=True, slots=True)
class DirectoryRow:
    """A node of the virtual directory tree joined with its edge."""

    id: int
    name: str
    parent_id: int | None


@dataclass(frozen=True, slots=True)
class TrackRow:
    """Track record as stored in a per-user music DB."""

    id: int
    title: str
    directory_id: int | None
    file_name: str


@dataclass(frozen=True, slots=True)
class AlbumRow:
    id: int
    name: str


@dataclass(frozen=True, slots=True)
class ArtistRow:
    id: int
    name: str


@dataclass(frozen=True, slots=True)
class LibraryEntry:
    """Flattened track/album/artist row used by the table dump."""

    track_id: int
    track_title: str
    album_id: int | None
    album_name: str | None
    artist_id: int | None
    artist_name: str | None


def normalize_text(value: str | None) -> str | None:
    """
    Normalize optional text fields:
    - strip whitespace
    - coerce empty strings to None
    """
    if value is None:
        return None
    v = value.strip()
    return v if v else None
