"""
System database access layer: registered users and pending uploads.

The upload endpoint writes pending uploads here; the ingestion scheduler reads
and deletes them. Per-user music DBs are handled by
`tunecellar.core.db.pool.PoolRegistry`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from tunecellar.core.db import queries_uploads
from tunecellar.core.db.models import PendingUpload
from tunecellar.core.db.pool import SqlitePool, validate_user_name
from tunecellar.core.db.schema import ensure_user_schema


class UserDb:
    """
    Async access layer for the system DB.

    Usage:
        db = UserDb("devdir/user.db")
        await db.open()
        await db.ensure_schema()
        ... queries ...
        await db.close()

    Notes:
    - Backed by a `SqlitePool`, so the scheduler's per-item deletes and the
      upload endpoint's inserts do not share a connection.
    - Single statements run in autocommit mode; use `transaction()` to group them.
    """

    def __init__(self, db_path: str | Path, *, pool_size: int = 4, busy_timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._pool_size = pool_size
        self._busy_timeout = busy_timeout
        self._pool: SqlitePool | None = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def open(self) -> None:
        if self._pool is not None:
            return
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._pool = SqlitePool(
            self._db_path, size=self._pool_size, busy_timeout=self._busy_timeout
        )

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None

    def _require_pool(self) -> SqlitePool:
        if self._pool is None:
            raise RuntimeError("UserDb is not open. Call await db.open() first.")
        return self._pool

    async def ensure_schema(self) -> None:
        """Create or migrate schema to current version."""
        async with self._require_pool().acquire() as conn:
            await ensure_user_schema(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self._require_pool().transaction() as conn:
            yield conn

    # ===========================================================================
    # Users
    # ===========================================================================

    async def register_user(self, name: str) -> bool:
        """Register a user if missing. Returns True if a new row was created."""
        validate_user_name(name)
        async with self._require_pool().acquire() as conn:
            return await queries_uploads.insert_user(conn, name)

    async def user_exists(self, name: str) -> bool:
        async with self._require_pool().acquire() as conn:
            return await queries_uploads.user_exists(conn, name)

    async def list_users(self) -> list[str]:
        async with self._require_pool().acquire() as conn:
            return await queries_uploads.list_users(conn)

    # ===========================================================================
    # Pending uploads
    # ===========================================================================

    async def add_pending_upload(self, user: str, original_path: str) -> int:
        async with self._require_pool().acquire() as conn:
            return await queries_uploads.insert_pending_upload(
                conn, user=user, original_path=original_path
            )

    async def list_pending_uploads(self) -> list[PendingUpload]:
        async with self._require_pool().acquire() as conn:
            return await queries_uploads.list_pending_uploads(conn)

    async def get_pending_upload(self, upload_id: int) -> PendingUpload | None:
        async with self._require_pool().acquire() as conn:
            return await queries_uploads.get_pending_upload(conn, upload_id)

    async def delete_pending_upload(self, upload_id: int) -> bool:
        async with self._require_pool().acquire() as conn:
            return await queries_uploads.delete_pending_upload(conn, upload_id)

    async def count_pending_uploads(self) -> int:
        async with self._require_pool().acquire() as conn:
            return await queries_uploads.count_pending_uploads(conn)
