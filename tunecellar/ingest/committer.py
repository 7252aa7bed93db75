"""
Track committer: persists extracted metadata for one ingested file.

All inserts run on the caller's connection, inside the per-upload transaction.
Album and artist rows are created per ingested file and are *not* deduplicated
against existing rows of the same name.
"""

from __future__ import annotations

from dataclasses import dataclass

import aiosqlite

from tunecellar.core.db.models import normalize_text


@dataclass(frozen=True, slots=True)
class CommittedTrack:
    track_id: int
    album_id: int | None
    artist_id: int | None


async def _insert_returning_id(conn: aiosqlite.Connection, sql: str, params: tuple) -> int:
    cursor = await conn.execute(sql, params)
    row_id = cursor.lastrowid
    if row_id is None:
        raise RuntimeError(f"Insert failed: no rowid for {sql!r}")
    return int(row_id)


async def commit_track(
    conn: aiosqlite.Connection,
    *,
    file_name: str,
    directory_id: int | None,
    title: str | None = None,
    artist: str | None = None,
    album: str | None = None,
) -> CommittedTrack:
    """
    Insert album/artist (when named), the track and the join rows.

    The track title falls back to `file_name` when no title was extracted.
    """
    title = normalize_text(title)
    artist = normalize_text(artist)
    album = normalize_text(album)

    album_id: int | None = None
    if album:
        album_id = await _insert_returning_id(
            conn, "INSERT INTO albums (name) VALUES (?);", (album,)
        )

    artist_id: int | None = None
    if artist:
        artist_id = await _insert_returning_id(
            conn, "INSERT INTO artists (name) VALUES (?);", (artist,)
        )

    track_id = await _insert_returning_id(
        conn,
        "INSERT INTO tracks (title, directory_id, file_name) VALUES (?, ?, ?);",
        (title or file_name, directory_id, file_name),
    )

    if artist_id is not None:
        await conn.execute(
            "INSERT INTO track_artists (track_id, artist_id) VALUES (?, ?);",
            (track_id, artist_id),
        )
    if album_id is not None:
        await conn.execute(
            "INSERT INTO track_albums (track_id, album_id) VALUES (?, ?);",
            (track_id, album_id),
        )

    return CommittedTrack(track_id=track_id, album_id=album_id, artist_id=artist_id)
