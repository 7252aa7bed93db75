"""
Virtual path validation and directory resolution.

A virtual path is slash-delimited and absolute, e.g. "/Artist/Album/01 Song.mp3".
Every segment but the last names a directory in the user's virtual tree; the last
is the file name. Segments are trimmed and may not be empty.

`resolve_directory()` walks the tree from the root, creating missing nodes. It must
run inside the caller's write transaction (`BEGIN IMMEDIATE`): SQLite's write lock
is taken before the first lookup, so two concurrent resolutions of the same prefix
are serialized and cannot both create the same (parent, name) node.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import aiosqlite

from tunecellar.core import PathError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VirtualPath:
    """A validated virtual path: trimmed folder segments plus the file name."""

    folders: tuple[str, ...]
    filename: str


def validate_path(path: str) -> VirtualPath:
    """
    Split and validate a virtual path. Performs no database access.

    Raises:
        PathError: the path is not absolute, is empty, or has a segment that is
            empty after trimming.
    """
    if not path.strip():
        raise PathError("path contains nothing, not even a filename")
    if not path.startswith("/"):
        raise PathError(f"path {path!r} is not absolute")

    segments = path.split("/")[1:]
    filename = segments.pop().strip()
    if not filename:
        raise PathError(f"filename of {path!r} was trimmed into emptiness")

    folders: list[str] = []
    for raw in segments:
        segment = raw.strip()
        if not segment:
            raise PathError(f"folder {raw!r} in {path!r} was trimmed into emptiness")
        folders.append(segment)

    return VirtualPath(folders=tuple(folders), filename=filename)


async def _find_child(conn: aiosqlite.Connection, parent_id: int | None, name: str) -> int | None:
    cursor = await conn.execute(
        """
        SELECT d.id
        FROM directory_edges e
        JOIN directories d ON d.id = e.node_id
        WHERE e.parent_id IS ? AND d.name = ?
        ORDER BY d.id
        LIMIT 1;
        """,
        (parent_id, name),
    )
    row = await cursor.fetchone()
    return int(row[0]) if row is not None else None


async def _create_child(conn: aiosqlite.Connection, parent_id: int | None, name: str) -> int:
    cursor = await conn.execute("INSERT INTO directories (name) VALUES (?);", (name,))
    node_id = cursor.lastrowid
    if node_id is None:
        raise RuntimeError("Insert failed: directory row has no rowid.")
    await conn.execute(
        "INSERT INTO directory_edges (node_id, parent_id) VALUES (?, ?);",
        (int(node_id), parent_id),
    )
    return int(node_id)


async def resolve_directory(conn: aiosqlite.Connection, folders: tuple[str, ...]) -> int | None:
    """
    Find or create the directory chain `folders` below the virtual root.

    Returns:
        The id of the last folder, or None when `folders` is empty (virtual root).
    """
    current: int | None = None
    for name in folders:
        child = await _find_child(conn, current, name)
        if child is None:
            child = await _create_child(conn, current, name)
            logger.debug("Created directory %r (id=%d) under %s", name, child, current)
        current = child
    return current


async def resolve_path(conn: aiosqlite.Connection, path: str) -> tuple[int | None, str]:
    """Validate `path` and resolve its folders. Returns (directory id, file name)."""
    vpath = validate_path(path)
    directory_id = await resolve_directory(conn, vpath.folders)
    return directory_id, vpath.filename
