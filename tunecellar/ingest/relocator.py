"""
File relocator: moves staged uploads into permanent per-user storage.

Layout:
- staging:   `<staging_dir>/<pending upload id>`
- permanent: `<users_dir>/<user>/<track id>`

Both file names are integers, so no client-controlled text ever reaches the
filesystem except the (validated) user name.

The move is a single `os.rename`: atomic on one filesystem, and it fails
rather than degrading to copy+delete across filesystems.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from tunecellar.core import PathError, RelocationError
from tunecellar.core.db.pool import validate_user_name

logger = logging.getLogger(__name__)


def staging_path(staging_dir: Path, upload_id: int) -> Path:
    return staging_dir / str(int(upload_id))


def library_path(users_dir: Path, user: str, track_id: int) -> Path:
    return users_dir / validate_user_name(user) / str(int(track_id))


async def staged_file_exists(staging_dir: Path, upload_id: int) -> bool:
    """True if the staged file for `upload_id` exists and is a regular file."""
    path = staging_path(staging_dir, upload_id)
    try:
        return await asyncio.to_thread(path.is_file)
    except OSError:
        return False


async def prepare_destination(users_dir: Path, user: str) -> Path:
    """
    Make sure the user's storage directory exists.

    Raises:
        RelocationError: the directory cannot be created or the user name is invalid.
    """
    try:
        user_dir = users_dir / validate_user_name(user)
    except PathError as e:
        raise RelocationError(str(e)) from e

    try:
        await asyncio.to_thread(user_dir.mkdir, parents=True, exist_ok=True)
    except OSError as e:
        raise RelocationError(f"cannot create storage directory {user_dir}: {e}") from e
    return user_dir


def _rename_no_clobber(src: Path, dst: Path) -> None:
    if dst.exists():
        raise FileExistsError(f"destination {dst} already exists")
    os.rename(src, dst)


async def relocate(src: Path, dst: Path) -> None:
    """
    Atomically rename `src` to `dst`.

    Raises:
        RelocationError: the source is missing, the destination exists or is
            invalid, or the rename crosses filesystems.
    """
    try:
        await asyncio.to_thread(_rename_no_clobber, src, dst)
    except OSError as e:
        raise RelocationError(f"cannot move {src} to {dst}: {e}") from e
    logger.debug("Moved %s -> %s", src, dst)
