"""
Staging of uploaded files.

The upload endpoint streams the request body into a temporary `.part` file, then
records the pending upload and renames the file to its id in one short
transaction. The system DB write lock is never held while the body is still
arriving.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from collections.abc import AsyncIterable
from dataclasses import dataclass
from pathlib import Path

from tunecellar.core.db import queries_uploads
from tunecellar.core.user_db import UserDb
from tunecellar.ingest.relocator import staging_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StagedUpload:
    upload_id: int
    written: int


async def stage_upload(
    *,
    user_db: UserDb,
    staging_dir: Path,
    user: str,
    original_path: str,
    chunks: AsyncIterable[bytes],
) -> StagedUpload:
    """
    Write `chunks` to the staging area and record a pending upload.

    On any failure nothing is left behind: no pending row, no staged file.
    """
    await asyncio.to_thread(staging_dir.mkdir, parents=True, exist_ok=True)

    part = staging_dir / f".{uuid.uuid4().hex}.part"
    final: Path | None = None
    written = 0
    try:
        fh = await asyncio.to_thread(part.open, "wb")
        try:
            async for chunk in chunks:
                if not chunk:
                    continue
                await asyncio.to_thread(fh.write, chunk)
                written += len(chunk)
            await asyncio.to_thread(fh.flush)
            await asyncio.to_thread(os.fsync, fh.fileno())
        finally:
            await asyncio.to_thread(fh.close)

        async with user_db.transaction() as conn:
            upload_id = await queries_uploads.insert_pending_upload(
                conn, user=user, original_path=original_path
            )
            final = staging_path(staging_dir, upload_id)
            await asyncio.to_thread(os.rename, part, final)
    except BaseException:
        await asyncio.to_thread(part.unlink, missing_ok=True)
        if final is not None:
            await asyncio.to_thread(final.unlink, missing_ok=True)
        raise

    logger.debug("Staged upload %d for %s (%d bytes): %r", upload_id, user, written, original_path)
    return StagedUpload(upload_id=upload_id, written=written)
