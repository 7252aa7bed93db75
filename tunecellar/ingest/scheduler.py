"""
Ingestion scheduler.

One long-lived task per server process. Each time the wake signal fires it does a
full rescan of the pending uploads of *all* users (not just the one that
signalled) and processes every upload whose staged file is present:

    validate path -> BEGIN IMMEDIATE -> read tags
        -> resolve directories -> insert album/artist/track/joins
        -> ensure storage dir -> COMMIT
    -> rename staged file to <users_dir>/<user>/<track id>

Uploads are processed as concurrent tasks (bounded by `max_concurrency`), each
with its own pooled connection and transaction. Whatever the outcome, the
pending record is deleted afterwards: ingestion is at-most-once and failed
uploads are logged, not retried.

The file is renamed only after the transaction commits. If that rename fails
the track row exists without its file; this is reported as a
`ReconciliationError` for manual repair.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from tunecellar.core import ReconciliationError, RelocationError
from tunecellar.core.db.models import PendingUpload
from tunecellar.core.db.pool import PoolRegistry
from tunecellar.core.user_db import UserDb
from tunecellar.ingest.committer import commit_track
from tunecellar.ingest.paths import resolve_directory, validate_path
from tunecellar.ingest.relocator import (
    library_path,
    prepare_destination,
    relocate,
    staged_file_exists,
    staging_path,
)
from tunecellar.ingest.tags import extract_tags
from tunecellar.ingest.wake import WakeSignal

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IngestResult:
    """Outcome of a successfully ingested upload."""

    upload_id: int
    user: str
    track_id: int
    directory_id: int | None
    title: str
    destination: Path


@dataclass(frozen=True, slots=True)
class ScanSummary:
    """Counts for one rescan of the pending uploads."""

    scanned: int = 0
    skipped: int = 0
    succeeded: int = 0
    failed: int = 0


class IngestScheduler:
    """
    Drives ingestion of pending uploads.

    Usage:
        scheduler = IngestScheduler(
            user_db=user_db,
            pools=pools,
            wake=wake,
            staging_dir=settings.storage.staging_dir,
            users_dir=settings.storage.users_dir,
        )
        task = asyncio.create_task(scheduler.run())
        ...
        await wake.close()   # graceful shutdown
        await task
    """

    def __init__(
        self,
        *,
        user_db: UserDb,
        pools: PoolRegistry,
        wake: WakeSignal,
        staging_dir: Path,
        users_dir: Path,
        max_concurrency: int = 4,
    ) -> None:
        self._user_db = user_db
        self._pools = pools
        self._wake = wake
        self._staging_dir = staging_dir
        self._users_dir = users_dir
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))

    @property
    def wake(self) -> WakeSignal:
        return self._wake

    async def run(self) -> None:
        """
        Rescan on every wake until the wake signal is closed.

        This is the only way the loop ends; failures of a rescan or of single
        uploads are logged and the loop keeps going.
        """
        logger.info("Ingestion scheduler started")
        while await self._wake.wait():
            try:
                summary = await self.scan_once()
            except Exception:
                logger.exception("Rescan of pending uploads failed")
                continue
            if summary.scanned:
                logger.info(
                    "Rescan done: %d pending, %d ingested, %d failed, %d waiting for files",
                    summary.scanned,
                    summary.succeeded,
                    summary.failed,
                    summary.skipped,
                )
        logger.info("Ingestion scheduler stopped")

    async def scan_once(self) -> ScanSummary:
        """List all pending uploads and process those whose staged file exists."""
        uploads = await self._user_db.list_pending_uploads()

        ready: list[PendingUpload] = []
        skipped = 0
        for upload in uploads:
            if await staged_file_exists(self._staging_dir, upload.id):
                ready.append(upload)
            else:
                # TODO: clean up pending records whose staged file never appears.
                skipped += 1
                logger.debug(
                    "Staged file for upload %d (user=%s) is missing; leaving record",
                    upload.id,
                    upload.user,
                )

        outcomes = await asyncio.gather(*(self._process_and_discard(u) for u in ready))
        succeeded = sum(1 for ok in outcomes if ok)

        return ScanSummary(
            scanned=len(uploads),
            skipped=skipped,
            succeeded=succeeded,
            failed=len(ready) - succeeded,
        )

    async def _process_and_discard(self, upload: PendingUpload) -> bool:
        """Per-upload error boundary. Returns True on success."""
        async with self._semaphore:
            ok = False
            try:
                result = await self.process_upload(upload)
            except ReconciliationError as e:
                logger.error(
                    "Upload %d (user=%s, path=%r) was committed as track %d but its file "
                    "could not be moved; manual reconciliation required: %s",
                    upload.id,
                    upload.user,
                    upload.original_path,
                    e.track_id,
                    e,
                )
            except Exception:
                logger.exception(
                    "Ingestion failed for upload %d (user=%s, path=%r)",
                    upload.id,
                    upload.user,
                    upload.original_path,
                )
            else:
                ok = True
                logger.info(
                    "Ingested upload %d for %s as track %d (%r)",
                    upload.id,
                    upload.user,
                    result.track_id,
                    result.title,
                )

            try:
                await self._user_db.delete_pending_upload(upload.id)
            except Exception as e:
                logger.error("Could not delete pending upload %d: %s", upload.id, e)

            return ok

    async def process_upload(self, upload: PendingUpload) -> IngestResult:
        """
        Ingest a single pending upload. Does not touch the pending record.

        Raises:
            PathError: malformed virtual path or user name (before any DB write).
            TagReadError: a tag reader that claimed the file failed to parse it.
            RelocationError: storage directory unusable (transaction rolled back).
            ReconciliationError: committed, but the rename failed afterwards.
            aiosqlite.Error: database failure (transaction rolled back).
        """
        vpath = validate_path(upload.original_path)
        src = staging_path(self._staging_dir, upload.id)

        pool = await self._pools.get(upload.user)
        async with pool.transaction() as conn:
            tags = await asyncio.to_thread(extract_tags, src)
            directory_id = await resolve_directory(conn, vpath.folders)
            committed = await commit_track(
                conn,
                file_name=vpath.filename,
                directory_id=directory_id,
                title=tags.get("title"),
                artist=tags.get("artist"),
                album=tags.get("album"),
            )
            await prepare_destination(self._users_dir, upload.user)

        dst = library_path(self._users_dir, upload.user, committed.track_id)
        try:
            await relocate(src, dst)
        except RelocationError as e:
            raise ReconciliationError(
                str(e), user=upload.user, track_id=committed.track_id
            ) from e

        return IngestResult(
            upload_id=upload.id,
            user=upload.user,
            track_id=committed.track_id,
            directory_id=directory_id,
            title=tags.get("title") or vpath.filename,
            destination=dst,
        )
