"""
Database schemas + migrations for Tunecellar.

There are two kinds of SQLite database:

- the system DB (`user.db`): registered users and pending uploads
- one music DB per user (`u/<user>/music.db`): the virtual directory tree,
  tracks, albums, artists and their join tables

Design notes:
- We use SQLite `PRAGMA user_version` as the schema version.
- Migrations are forward-only (no downgrade support).
- Connections are opened in autocommit mode, so each migration step runs inside
  an explicit transaction.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Final

import aiosqlite

# Bump when you change a schema and add a migration step.
USER_SCHEMA_VERSION: Final[int] = 1
MUSIC_SCHEMA_VERSION: Final[int] = 1

Migration = Callable[[aiosqlite.Connection, int, int], Awaitable[None]]


async def _current_version(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("PRAGMA user_version;")
    row = await cursor.fetchone()
    return int(row[0]) if row is not None else 0


async def _ensure_versioned(
    conn: aiosqlite.Connection, *, target: int, migrate: Migration, label: str
) -> None:
    current = await _current_version(conn)

    if current > target:
        raise RuntimeError(
            f"{label} schema version {current} is newer than supported {target}."
        )

    if current == target:
        return

    await conn.execute("BEGIN IMMEDIATE;")
    try:
        await migrate(conn, current, target)
        await conn.execute(f"PRAGMA user_version = {target};")
    except BaseException:
        await conn.execute("ROLLBACK;")
        raise
    await conn.execute("COMMIT;")


async def ensure_user_schema(conn: aiosqlite.Connection) -> None:
    """Create or migrate the system DB schema to the current version."""
    await _ensure_versioned(
        conn, target=USER_SCHEMA_VERSION, migrate=migrate_user_db, label="System DB"
    )


async def ensure_music_schema(conn: aiosqlite.Connection) -> None:
    """Create or migrate a per-user music DB schema to the current version."""
    await _ensure_versioned(
        conn, target=MUSIC_SCHEMA_VERSION, migrate=migrate_music_db, label="Music DB"
    )


async def migrate_user_db(conn: aiosqlite.Connection, from_version: int, to_version: int) -> None:
    """Perform forward-only migrations of the system DB."""
    # v0 -> v1
    if from_version == 0 and to_version >= 1:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                name TEXT PRIMARY KEY,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS pending_uploads (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user TEXT NOT NULL REFERENCES users(name),
                original_path TEXT NOT NULL,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_pending_uploads_user ON pending_uploads(user);"
        )
        from_version = 1

    if from_version != to_version:
        raise RuntimeError(f"No migration path from {from_version} to {to_version}.")


async def migrate_music_db(conn: aiosqlite.Connection, from_version: int, to_version: int) -> None:
    """Perform forward-only migrations of a per-user music DB."""
    # v0 -> v1
    if from_version == 0 and to_version >= 1:
        # Virtual directory tree as an adjacency list: one edge per node,
        # NULL parent means the node hangs off the virtual root.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS directories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS directory_edges (
                node_id INTEGER PRIMARY KEY REFERENCES directories(id) ON DELETE CASCADE,
                parent_id INTEGER REFERENCES directories(id) ON DELETE CASCADE
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_directory_edges_parent ON directory_edges(parent_id);"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_directories_name ON directories(name);"
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tracks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                directory_id INTEGER REFERENCES directories(id),
                file_name TEXT NOT NULL
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tracks_directory ON tracks(directory_id);"
        )

        # Albums/artists are not unique by name: each ingested file gets its own rows.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS albums (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS artists (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL
            )
            """
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS track_albums (
                track_id INTEGER NOT NULL REFERENCES tracks(id) ON DELETE CASCADE,
                album_id INTEGER NOT NULL REFERENCES albums(id) ON DELETE CASCADE,
                PRIMARY KEY (track_id, album_id)
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS track_artists (
                track_id INTEGER NOT NULL REFERENCES tracks(id) ON DELETE CASCADE,
                artist_id INTEGER NOT NULL REFERENCES artists(id) ON DELETE CASCADE,
                PRIMARY KEY (track_id, artist_id)
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_track_albums_album ON track_albums(album_id);"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_track_artists_artist ON track_artists(artist_id);"
        )
        from_version = 1

    if from_version != to_version:
        raise RuntimeError(f"No migration path from {from_version} to {to_version}.")
