"""
Read-side queries over a per-user music DB.

These back the table dump endpoint and the tests; the ingestion pipeline writes
through `tunecellar.ingest.paths` and `tunecellar.ingest.committer`.

Design:
- Functions take an open `aiosqlite.Connection` and return DTOs.
- These functions assume `conn.row_factory = aiosqlite.Row`.
"""

from __future__ import annotations

import aiosqlite

from tunecellar.core.db.models import (
    AlbumRow,
    ArtistRow,
    DirectoryRow,
    LibraryEntry,
    TrackRow,
)

# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------


async def list_directories(conn: aiosqlite.Connection) -> list[DirectoryRow]:
    cursor = await conn.execute(
        """
        SELECT d.id, d.name, e.parent_id
        FROM directories d
        JOIN directory_edges e ON e.node_id = d.id
        ORDER BY d.id;
        """
    )
    rows = await cursor.fetchall()
    return [
        DirectoryRow(
            id=int(r["id"]),
            name=r["name"],
            parent_id=int(r["parent_id"]) if r["parent_id"] is not None else None,
        )
        for r in rows
    ]


async def list_children(conn: aiosqlite.Connection, parent_id: int | None) -> list[DirectoryRow]:
    """Directories directly below `parent_id` (None = virtual root)."""
    cursor = await conn.execute(
        """
        SELECT d.id, d.name, e.parent_id
        FROM directories d
        JOIN directory_edges e ON e.node_id = d.id
        WHERE e.parent_id IS ?
        ORDER BY d.name COLLATE NOCASE, d.id;
        """,
        (parent_id,),
    )
    rows = await cursor.fetchall()
    return [DirectoryRow(id=int(r["id"]), name=r["name"], parent_id=parent_id) for r in rows]


async def count_directories(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("SELECT COUNT(*) AS c FROM directories;")
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


# ---------------------------------------------------------------------------
# Tracks / albums / artists
# ---------------------------------------------------------------------------


def _row_to_track(row: aiosqlite.Row) -> TrackRow:
    return TrackRow(
        id=int(row["id"]),
        title=row["title"],
        directory_id=int(row["directory_id"]) if row["directory_id"] is not None else None,
        file_name=row["file_name"],
    )


async def get_track_by_id(conn: aiosqlite.Connection, track_id: int) -> TrackRow | None:
    cursor = await conn.execute(
        "SELECT id, title, directory_id, file_name FROM tracks WHERE id = ?;",
        (int(track_id),),
    )
    row = await cursor.fetchone()
    return _row_to_track(row) if row is not None else None


async def list_tracks(conn: aiosqlite.Connection) -> list[TrackRow]:
    cursor = await conn.execute("SELECT id, title, directory_id, file_name FROM tracks ORDER BY id;")
    rows = await cursor.fetchall()
    return [_row_to_track(r) for r in rows]


async def list_tracks_in_directory(
    conn: aiosqlite.Connection, directory_id: int | None
) -> list[TrackRow]:
    cursor = await conn.execute(
        """
        SELECT id, title, directory_id, file_name
        FROM tracks
        WHERE directory_id IS ?
        ORDER BY file_name COLLATE NOCASE, id;
        """,
        (directory_id,),
    )
    rows = await cursor.fetchall()
    return [_row_to_track(r) for r in rows]


async def list_albums_for_track(conn: aiosqlite.Connection, track_id: int) -> list[AlbumRow]:
    cursor = await conn.execute(
        """
        SELECT al.id, al.name
        FROM albums al
        JOIN track_albums ta ON ta.album_id = al.id
        WHERE ta.track_id = ?
        ORDER BY al.id;
        """,
        (int(track_id),),
    )
    rows = await cursor.fetchall()
    return [AlbumRow(id=int(r["id"]), name=r["name"]) for r in rows]


async def list_artists_for_track(conn: aiosqlite.Connection, track_id: int) -> list[ArtistRow]:
    cursor = await conn.execute(
        """
        SELECT ar.id, ar.name
        FROM artists ar
        JOIN track_artists ta ON ta.artist_id = ar.id
        WHERE ta.track_id = ?
        ORDER BY ar.id;
        """,
        (int(track_id),),
    )
    rows = await cursor.fetchall()
    return [ArtistRow(id=int(r["id"]), name=r["name"]) for r in rows]


async def count_albums(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("SELECT COUNT(*) AS c FROM albums;")
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


async def count_artists(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("SELECT COUNT(*) AS c FROM artists;")
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


async def dump_library(conn: aiosqlite.Connection) -> list[LibraryEntry]:
    """Every track with its (optional) album and artist, one row per combination."""
    cursor = await conn.execute(
        """
        SELECT
            t.id AS track_id,
            t.title AS track_title,
            al.id AS album_id,
            al.name AS album_name,
            ar.id AS artist_id,
            ar.name AS artist_name
        FROM tracks t
        LEFT JOIN track_albums tal ON tal.track_id = t.id
        LEFT JOIN albums al ON al.id = tal.album_id
        LEFT JOIN track_artists tar ON tar.track_id = t.id
        LEFT JOIN artists ar ON ar.id = tar.artist_id
        ORDER BY t.id, al.id, ar.id;
        """
    )
    rows = await cursor.fetchall()
    return [
        LibraryEntry(
            track_id=int(r["track_id"]),
            track_title=r["track_title"],
            album_id=int(r["album_id"]) if r["album_id"] is not None else None,
            album_name=r["album_name"],
            artist_id=int(r["artist_id"]) if r["artist_id"] is not None else None,
            artist_name=r["artist_name"],
        )
        for r in rows
    ]
