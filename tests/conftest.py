"""
Shared fixtures: temporary databases, a scheduler wired to them, and builders
for small but real tagged audio files.
"""

from __future__ import annotations

import struct
from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest
from mutagen.aiff import AIFF
from mutagen.id3 import ID3, TALB, TIT2, TPE1
from mutagen.ogg import OggPage
from mutagen.wave import WAVE

from tunecellar.core.db.pool import PoolRegistry, SqlitePool
from tunecellar.core.user_db import UserDb
from tunecellar.ingest.scheduler import IngestScheduler
from tunecellar.ingest.wake import WakeSignal

# Bytes appended after tag blocks to stand in for audio frames.
FAKE_AUDIO = b"\x00" * 256


# =============================================================================
# Audio file builders
# =============================================================================


def _id3_frames(
    tags: ID3, *, title: str | None, artist: str | None, album: str | None
) -> None:
    if title is not None:
        tags.add(TIT2(encoding=3, text=[title]))
    if artist is not None:
        tags.add(TPE1(encoding=3, text=[artist]))
    if album is not None:
        tags.add(TALB(encoding=3, text=[album]))


def build_id3_bytes(
    path: Path, *, title: str | None = None, artist: str | None = None, album: str | None = None
) -> bytes:
    """Write an ID3v2.4 tag (plus fake audio) to `path` and return the file bytes."""
    tags = ID3()
    _id3_frames(tags, title=title, artist=artist, album=album)
    tags.save(path)
    with path.open("ab") as f:
        f.write(FAKE_AUDIO)
    return path.read_bytes()


def build_wave_bytes(
    path: Path,
    *,
    tagged: bool = True,
    title: str | None = None,
    artist: str | None = None,
    album: str | None = None,
) -> bytes:
    """
    Write a RIFF/WAVE file (PCM fmt chunk + fake data chunk) to `path`.

    With `tagged`, an "id3 " chunk carrying the given frames is added.
    """
    fmt = struct.pack("<HHIIHH", 1, 2, 44100, 44100 * 4, 4, 16)
    body = (
        b"WAVE"
        + b"fmt " + struct.pack("<I", len(fmt)) + fmt
        + b"data" + struct.pack("<I", len(FAKE_AUDIO)) + FAKE_AUDIO
    )
    path.write_bytes(b"RIFF" + struct.pack("<I", len(body)) + body)
    if tagged:
        audio = WAVE(path)
        audio.add_tags()
        _id3_frames(audio.tags, title=title, artist=artist, album=album)
        audio.save()
    return path.read_bytes()


def build_aiff_bytes(
    path: Path, *, title: str | None = None, artist: str | None = None, album: str | None = None
) -> bytes:
    """
    Write an AIFF file (COMM + SSND chunks) with an "ID3 " chunk to `path`.

    COMM: stereo, 16 bit, 44.1 kHz as an 80-bit extended float.
    """
    comm = struct.pack(">hLh", 2, len(FAKE_AUDIO) // 4, 16) + struct.pack(
        ">hLL", 0x400E, 0xAC440000, 0
    )
    ssnd = struct.pack(">II", 0, 0) + FAKE_AUDIO
    body = (
        b"AIFF"
        + b"COMM" + struct.pack(">I", len(comm)) + comm
        + b"SSND" + struct.pack(">I", len(ssnd)) + ssnd
    )
    path.write_bytes(b"FORM" + struct.pack(">I", len(body)) + body)
    audio = AIFF(path)
    audio.add_tags()
    _id3_frames(audio.tags, title=title, artist=artist, album=album)
    audio.save()
    return path.read_bytes()


def _vorbis_comment(comments: dict[str, list[str]]) -> bytes:
    vendor = b"tunecellar tests"
    entries = [f"{key}={value}".encode() for key, values in comments.items() for value in values]
    data = struct.pack("<I", len(vendor)) + vendor + struct.pack("<I", len(entries))
    for entry in entries:
        data += struct.pack("<I", len(entry)) + entry
    return data


def _flac_block(block_type: int, data: bytes, *, last: bool) -> bytes:
    header = ((0x80 if last else 0x00) | block_type).to_bytes(1, "big")
    return header + len(data).to_bytes(3, "big") + data


def build_flac_bytes(comments: dict[str, list[str]]) -> bytes:
    """
    Build a minimal FLAC stream: STREAMINFO + VORBIS_COMMENT, then fake frames.

    STREAMINFO: 44.1 kHz, stereo, 16 bit, 0 samples.
    """
    packed = (44100 << 44) | ((2 - 1) << 41) | ((16 - 1) << 36)
    streaminfo = (
        struct.pack(">HH", 4096, 4096)
        + b"\x00\x00\x00"
        + b"\x00\x00\x00"
        + struct.pack(">Q", packed)
        + b"\x00" * 16
    )

    return (
        b"fLaC"
        + _flac_block(0, streaminfo, last=False)
        + _flac_block(4, _vorbis_comment(comments), last=True)
        + b"\xff\xf8"
        + FAKE_AUDIO
    )


def _ogg_page(packet: bytes, *, sequence: int, first: bool = False, last: bool = False) -> bytes:
    page = OggPage()
    page.serial = 1
    page.sequence = sequence
    page.position = 0
    page.first = first
    page.last = last
    page.packets = [packet]
    return page.write()


def build_ogg_vorbis_bytes(comments: dict[str, list[str]]) -> bytes:
    """
    Build a minimal Ogg Vorbis stream: identification page, comment page and
    a final page of fake audio.

    Identification header: stereo, 44.1 kHz, 128 kbit/s nominal.
    """
    ident = (
        b"\x01vorbis"
        + struct.pack("<IBI3i", 0, 2, 44100, 0, 128000, 0)
        + b"\xb8\x01"
    )
    comment = b"\x03vorbis" + _vorbis_comment(comments) + b"\x01"
    return (
        _ogg_page(ident, sequence=0, first=True)
        + _ogg_page(comment, sequence=1)
        + _ogg_page(FAKE_AUDIO[:16], sequence=2, last=True)
    )


def build_id3v1_mpeg_bytes(*, title: str, artist: str, album: str) -> bytes:
    """Bare MPEG-looking bytes with only an ID3v1 trailer (no ID3v2 header)."""
    trailer = (
        b"TAG"
        + title.encode("latin-1").ljust(30, b"\x00")
        + artist.encode("latin-1").ljust(30, b"\x00")
        + album.encode("latin-1").ljust(30, b"\x00")
        + b"2001"
        + b"\x00" * 30
        + b"\xff"
    )
    return b"\xff\xfb\x90\x00" + FAKE_AUDIO + trailer


@pytest.fixture
def make_id3_file(tmp_path: Path) -> Callable[..., Path]:
    """Factory: create an ID3-tagged file and return its path."""
    counter = 0

    def _make(
        *, title: str | None = None, artist: str | None = None, album: str | None = None
    ) -> Path:
        nonlocal counter
        counter += 1
        path = tmp_path / f"id3-{counter}.mp3"
        build_id3_bytes(path, title=title, artist=artist, album=album)
        return path

    return _make


@pytest.fixture
def make_flac_file(tmp_path: Path) -> Callable[[dict[str, list[str]]], Path]:
    """Factory: create a FLAC file carrying the given Vorbis comments."""
    counter = 0

    def _make(comments: dict[str, list[str]]) -> Path:
        nonlocal counter
        counter += 1
        path = tmp_path / f"vorbis-{counter}.flac"
        path.write_bytes(build_flac_bytes(comments))
        return path

    return _make


# =============================================================================
# Databases
# =============================================================================


@pytest.fixture
async def user_db(tmp_path: Path) -> AsyncIterator[UserDb]:
    """System DB in a temp dir with user 'demo' registered."""
    db = UserDb(tmp_path / "user.db")
    await db.open()
    await db.ensure_schema()
    await db.register_user("demo")
    yield db
    await db.close()


@pytest.fixture
async def pools(tmp_path: Path) -> AsyncIterator[PoolRegistry]:
    registry = PoolRegistry(tmp_path / "u", pool_size=4, busy_timeout=10.0)
    yield registry
    await registry.close_all()


@pytest.fixture
async def music_pool(pools: PoolRegistry) -> SqlitePool:
    """Music DB pool of user 'demo' (schema applied)."""
    return await pools.get("demo")


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    path = tmp_path / "temp"
    path.mkdir()
    return path


@pytest.fixture
def users_dir(pools: PoolRegistry) -> Path:
    return pools.users_dir


@pytest.fixture
def scheduler(
    user_db: UserDb, pools: PoolRegistry, staging_dir: Path, users_dir: Path
) -> IngestScheduler:
    """Scheduler with an unsignalled wake (tests drive `scan_once()` directly)."""
    return IngestScheduler(
        user_db=user_db,
        pools=pools,
        wake=WakeSignal(signalled=False),
        staging_dir=staging_dir,
        users_dir=users_dir,
        max_concurrency=4,
    )


@pytest.fixture
def stage(user_db: UserDb, staging_dir: Path) -> Callable[..., object]:
    """Factory: record a pending upload and write its staged file."""

    async def _stage(original_path: str, data: bytes, *, user: str = "demo") -> int:
        upload_id = await user_db.add_pending_upload(user, original_path)
        (staging_dir / str(upload_id)).write_bytes(data)
        return upload_id

    return _stage
