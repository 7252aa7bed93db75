"""
System DB queries: registered users and pending uploads.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return rows/materialized dataclasses.
- These functions assume `conn.row_factory = aiosqlite.Row`.
- They never open or commit transactions; callers decide the boundary.

Important:
- Do NOT interpolate user input into SQL.
"""

from __future__ import annotations

import aiosqlite

from tunecellar.core.db.models import PendingUpload

# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def insert_user(conn: aiosqlite.Connection, name: str) -> bool:
    """Register a user. Returns False if the user already existed."""
    cursor = await conn.execute("INSERT OR IGNORE INTO users (name) VALUES (?);", (name,))
    return cursor.rowcount > 0


async def user_exists(conn: aiosqlite.Connection, name: str) -> bool:
    cursor = await conn.execute("SELECT 1 FROM users WHERE name = ?;", (name,))
    return await cursor.fetchone() is not None


async def list_users(conn: aiosqlite.Connection) -> list[str]:
    cursor = await conn.execute("SELECT name FROM users ORDER BY name;")
    rows = await cursor.fetchall()
    return [str(r["name"]) for r in rows]


# ---------------------------------------------------------------------------
# Pending uploads
# ---------------------------------------------------------------------------


def _row_to_pending(row: aiosqlite.Row) -> PendingUpload:
    return PendingUpload(
        id=int(row["id"]),
        user=str(row["user"]),
        original_path=str(row["original_path"]),
    )


async def insert_pending_upload(conn: aiosqlite.Connection, *, user: str, original_path: str) -> int:
    """Record a staged upload and return its id (the staging filename)."""
    cursor = await conn.execute(
        "INSERT INTO pending_uploads (user, original_path) VALUES (?, ?);",
        (user, original_path),
    )
    upload_id = cursor.lastrowid
    if upload_id is None:
        raise RuntimeError("Insert failed: pending upload has no rowid.")
    return int(upload_id)


async def list_pending_uploads(conn: aiosqlite.Connection) -> list[PendingUpload]:
    """All pending uploads across every user, oldest first."""
    cursor = await conn.execute(
        "SELECT id, user, original_path FROM pending_uploads ORDER BY id;"
    )
    rows = await cursor.fetchall()
    return [_row_to_pending(r) for r in rows]


async def get_pending_upload(conn: aiosqlite.Connection, upload_id: int) -> PendingUpload | None:
    cursor = await conn.execute(
        "SELECT id, user, original_path FROM pending_uploads WHERE id = ?;",
        (int(upload_id),),
    )
    row = await cursor.fetchone()
    return _row_to_pending(row) if row is not None else None


async def delete_pending_upload(conn: aiosqlite.Connection, upload_id: int) -> bool:
    cursor = await conn.execute("DELETE FROM pending_uploads WHERE id = ?;", (int(upload_id),))
    return cursor.rowcount > 0


async def count_pending_uploads(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("SELECT COUNT(*) AS c FROM pending_uploads;")
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0
