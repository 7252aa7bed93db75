"""
REST API Routes for Tunecellar.

- /api/status:    server status (users, pending uploads)
- /api/upload:    stage an uploaded file for ingestion
- /api/tabledump: every track of a user with album/artist
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException, Request

from tunecellar.core import PathError
from tunecellar.core.db import queries_library
from tunecellar.ingest.staging import stage_upload

if TYPE_CHECKING:
    from tunecellar.core.db.pool import PoolRegistry
    from tunecellar.core.user_db import UserDb
    from tunecellar.ingest.wake import WakeSignal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])

# References set during route registration
_user_db: UserDb | None = None
_pools: PoolRegistry | None = None
_wake: WakeSignal | None = None
_staging_dir: Path | None = None
_default_user: str = "demo"


def register_api_routes(
    app,
    *,
    user_db: UserDb,
    pools: PoolRegistry,
    wake: WakeSignal,
    staging_dir: Path,
    default_user: str,
) -> None:
    """
    Register API routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        user_db: System DB (users, pending uploads)
        pools: Per-user music DB pools
        wake: Wake signal of the ingestion scheduler
        staging_dir: Where uploads are staged
        default_user: User assumed when a request names none
    """
    global _user_db, _pools, _wake, _staging_dir, _default_user
    _user_db = user_db
    _pools = pools
    _wake = wake
    _staging_dir = staging_dir
    _default_user = default_user
    app.include_router(router)


async def _require_user(user: str | None) -> str:
    if _user_db is None:
        raise HTTPException(status_code=503, detail="Server not initialized")
    name = user or _default_user
    if not await _user_db.user_exists(name):
        raise HTTPException(status_code=404, detail=f"Unknown user: {name}")
    return name


# =============================================================================
# Server Status
# =============================================================================


@router.get("/api/status")
async def server_status() -> dict[str, Any]:
    """Get server status and basic info."""
    if _user_db is None or _wake is None:
        raise HTTPException(status_code=503, detail="Server not initialized")

    return {
        "server": "tunecellar",
        "version": "0.1.0",
        "users": await _user_db.list_users(),
        "pending_uploads": await _user_db.count_pending_uploads(),
        "ingest_running": not _wake.closed,
    }


# =============================================================================
# Upload
# =============================================================================


@router.post("/api/upload")
async def upload_track(
    request: Request, path: str | None = None, user: str | None = None
) -> dict[str, int]:
    """
    Stage the request body for ingestion.

    Query:
        path: Virtual path of the file, e.g. "/Artist/Album/01.mp3". It is
            validated when the file is ingested, not here.
        user: Owner of the upload (defaults to the configured default user).

    This does not process the file; it only writes it to the staging area and
    wakes the ingestion scheduler.
    """
    if path is None:
        logger.debug("Upload without a path; nothing staged")
        return {"written": 0}

    name = await _require_user(user)
    if _staging_dir is None or _wake is None or _user_db is None:
        raise HTTPException(status_code=503, detail="Server not initialized")

    staged = await stage_upload(
        user_db=_user_db,
        staging_dir=_staging_dir,
        user=name,
        original_path=path,
        chunks=request.stream(),
    )
    logger.info("Staged upload %d for %s: %r (%d bytes)", staged.upload_id, name, path, staged.written)

    await _wake.notify()
    return {"written": staged.written}


# =============================================================================
# Library
# =============================================================================


@router.get("/api/tabledump")
async def table_dump(user: str | None = None) -> dict[str, Any]:
    """Dump every track of a user with its album and artist (null when absent)."""
    name = await _require_user(user)
    if _pools is None:
        raise HTTPException(status_code=503, detail="Server not initialized")

    try:
        pool = await _pools.get(name)
    except PathError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    async with pool.acquire() as conn:
        entries = await queries_library.dump_library(conn)

    return {
        "user": name,
        "count": len(entries),
        "tracks": [asdict(e) for e in entries],
    }
