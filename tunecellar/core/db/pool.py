"""
SQLite connection pools and the per-user pool registry.

aiosqlite has no pooling of its own. `SqlitePool` keeps a small bounded set of
connections to one database file, opened lazily in autocommit mode so that
transactions are always explicit (`BEGIN IMMEDIATE` ... `COMMIT`).

`PoolRegistry` owns one pool per user music DB. Pools are created on first use and
closed together at server shutdown; there is no implicit teardown.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from tunecellar.core import PathError, PoolClosedError
from tunecellar.core.db.schema import ensure_music_schema

logger = logging.getLogger(__name__)

MUSIC_DB_FILENAME = "music.db"


def validate_user_name(user: str) -> str:
    """
    Check that a user name is usable as a single directory name.

    Returns the name unchanged; raises PathError otherwise.
    """
    if not user or not user.strip():
        raise PathError("user name is empty")
    if user in (".", "..") or "/" in user or "\\" in user or "\x00" in user:
        raise PathError(f"user name {user!r} is not a valid directory name")
    return user


class SqlitePool:
    """
    Bounded pool of aiosqlite connections to a single database file.

    Usage:
        pool = SqlitePool("music.db", size=4)
        async with pool.transaction() as conn:
            await conn.execute("INSERT ...")
        await pool.close()

    Notes:
    - In-memory databases are not supported: every connection would see its own DB.
    - `transaction()` takes the SQLite write lock up front (`BEGIN IMMEDIATE`), so
      concurrent writers to the same file are serialized by SQLite itself.
    """

    def __init__(self, db_path: str | Path, *, size: int = 4, busy_timeout: float = 5.0) -> None:
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self._db_path = str(db_path)
        self._size = size
        self._busy_timeout = busy_timeout
        self._slots = asyncio.Semaphore(size)
        self._idle: list[aiosqlite.Connection] = []
        self._open_count = 0
        self._closed = False

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def size(self) -> int:
        return self._size

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _require_open(self) -> None:
        if self._closed:
            raise PoolClosedError(f"Pool for {self._db_path} is closed.")

    async def _connect(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(
            self._db_path, isolation_level=None, timeout=self._busy_timeout
        )
        conn.row_factory = aiosqlite.Row

        # Pragmas: modern defaults without being clever.
        await conn.execute("PRAGMA foreign_keys = ON;")
        await conn.execute("PRAGMA journal_mode = WAL;")
        await conn.execute("PRAGMA synchronous = NORMAL;")

        self._open_count += 1
        logger.debug("Opened connection %d/%d to %s", self._open_count, self._size, self._db_path)
        return conn

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Check out a connection for the duration of the block."""
        self._require_open()
        async with self._slots:
            self._require_open()
            conn = self._idle.pop() if self._idle else await self._connect()
            try:
                yield conn
            finally:
                discard = self._closed
                if conn.in_transaction:
                    # A transaction left open (e.g. failed COMMIT) must not leak to the next user.
                    try:
                        await conn.execute("ROLLBACK;")
                    except aiosqlite.Error as e:
                        logger.warning(
                            "Rollback on release failed for %s; dropping connection: %s",
                            self._db_path,
                            e,
                        )
                        discard = True
                if discard:
                    await conn.close()
                    self._open_count -= 1
                else:
                    self._idle.append(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run the block inside a write transaction.

        Commits on normal exit, rolls back (and re-raises) on any exception.
        """
        async with self.acquire() as conn:
            await conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK;")
                raise
            await conn.execute("COMMIT;")

    async def close(self) -> None:
        """Close idle connections now; connections in use close when released."""
        if self._closed:
            return
        self._closed = True
        idle, self._idle = self._idle, []
        for conn in idle:
            await conn.close()
            self._open_count -= 1
        logger.debug("Closed pool for %s", self._db_path)


class PoolRegistry:
    """
    Per-user registry of music DB pools.

    Lifecycle:
    - `get(user)` opens the user's pool on first use (creating `<users_dir>/<user>/`
      and the music schema as needed) and returns the same pool afterwards.
    - `close_all()` closes every pool; the registry cannot be used afterwards.

    Thread-safety: creation is guarded by an asyncio lock so concurrent first uses
    of the same user produce a single pool.
    """

    def __init__(self, users_dir: Path, *, pool_size: int = 4, busy_timeout: float = 5.0) -> None:
        self._users_dir = users_dir
        self._pool_size = pool_size
        self._busy_timeout = busy_timeout
        self._pools: dict[str, SqlitePool] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def users_dir(self) -> Path:
        return self._users_dir

    def music_db_path(self, user: str) -> Path:
        return self._users_dir / validate_user_name(user) / MUSIC_DB_FILENAME

    def lookup(self, user: str) -> SqlitePool | None:
        """Return the user's pool if it has been opened, else None."""
        return self._pools.get(user)

    async def get(self, user: str) -> SqlitePool:
        """Return the user's pool, creating it on demand."""
        if self._closed:
            raise PoolClosedError("Pool registry is closed.")

        pool = self._pools.get(user)
        if pool is not None:
            return pool

        async with self._lock:
            if self._closed:
                raise PoolClosedError("Pool registry is closed.")
            pool = self._pools.get(user)
            if pool is not None:
                return pool

            db_path = self.music_db_path(user)
            await asyncio.to_thread(db_path.parent.mkdir, parents=True, exist_ok=True)

            pool = SqlitePool(db_path, size=self._pool_size, busy_timeout=self._busy_timeout)
            try:
                async with pool.acquire() as conn:
                    await ensure_music_schema(conn)
            except BaseException:
                await pool.close()
                raise

            self._pools[user] = pool
            logger.info("Opened music DB for user %s at %s", user, db_path)
            return pool

    async def close_all(self) -> None:
        """Close every pool. Called once at server shutdown."""
        async with self._lock:
            self._closed = True
            pools = list(self._pools.items())
            self._pools.clear()

        for user, pool in pools:
            try:
                await pool.close()
            except Exception as e:
                logger.warning("Error closing music DB pool for %s: %s", user, e)

        logger.info("All music DB pools closed (%d total)", len(pools))

    def __len__(self) -> int:
        return len(self._pools)

    def __contains__(self, user: str) -> bool:
        return user in self._pools

    def __iter__(self) -> Iterator[str]:
        return iter(self._pools)

    def __bool__(self) -> bool:
        """A registry instance is always truthy, even when empty."""
        return True
