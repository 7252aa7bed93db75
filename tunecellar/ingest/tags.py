"""
Tag reader chain.

Extracts the well-known fields `title`, `artist` and `album` from a staged file,
independent of its container format.

The readers form a closed set (`ReaderKind`) tried in the fixed order of
`READER_CHAIN`. Each reader answers a tri-state `is_candidate()` by sniffing the
file header, and can `parse()` the file:

- YES:     the reader owns this format; its parse result is used and a parse
           failure is fatal (`TagReadError` propagates).
- NO:      skip to the next reader.
- UNKNOWN: the format could not be detected; parse is attempted anyway and on
           failure the chain moves on.

If no reader produces a result the chain returns an empty mapping and callers
fall back to the filename for the title.

Everything here is synchronous (mutagen does blocking I/O); async callers should
run `extract_tags` in a thread.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Final

from mutagen import File as mutagen_file
from mutagen import MutagenError
from mutagen.aiff import AIFF
from mutagen.flac import FLAC
from mutagen.id3 import ID3
from mutagen.oggflac import OggFLAC
from mutagen.oggopus import OggOpus
from mutagen.oggspeex import OggSpeex
from mutagen.oggtheora import OggTheora
from mutagen.oggvorbis import OggVorbis
from mutagen.wave import WAVE

from tunecellar.core import TagReadError

logger = logging.getLogger(__name__)

TAG_FIELDS: Final[tuple[str, ...]] = ("title", "artist", "album")

# Keys: ID3=TIT2/TPE1/TALB (ID3v2.2 frames are upgraded to these names by mutagen)
ID3_FRAMES: Final[dict[str, str]] = {"title": "TIT2", "artist": "TPE1", "album": "TALB"}

OGG_FORMATS: Final[list[type]] = [OggVorbis, OggOpus, OggFLAC, OggSpeex, OggTheora]

# Bytes needed to tell the supported containers apart.
SNIFF_SIZE: Final[int] = 12


class ReaderKind(Enum):
    """The closed set of tag readers."""

    ID3 = "id3"  # mp3 / wav / aiff style containers
    VORBIS = "vorbis"  # flac / ogg style containers


class Candidacy(Enum):
    """Answer of `is_candidate()`."""

    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"


# Fixed priority order.
READER_CHAIN: Final[tuple[ReaderKind, ...]] = (ReaderKind.ID3, ReaderKind.VORBIS)

# Containers each reader claims ownership of.
_OWNED_CONTAINERS: Final[dict[ReaderKind, frozenset[str]]] = {
    ReaderKind.ID3: frozenset({"id3", "wave", "aiff"}),
    ReaderKind.VORBIS: frozenset({"flac", "ogg"}),
}


def _sniff(path: Path) -> bytes:
    with path.open("rb") as f:
        return f.read(SNIFF_SIZE)


def detect_container(header: bytes) -> str | None:
    """
    Identify the container from the first bytes of a file.

    Returns one of "id3", "wave", "aiff", "flac", "ogg", or None if unknown.
    Bare MPEG streams (no ID3v2 header) are deliberately reported as unknown.
    """
    if header.startswith(b"ID3"):
        return "id3"
    if header[:4] == b"RIFF" and header[8:12] == b"WAVE":
        return "wave"
    if header[:4] == b"FORM" and header[8:12] in (b"AIFF", b"AIFC"):
        return "aiff"
    if header[:4] == b"fLaC":
        return "flac"
    if header[:4] == b"OggS":
        return "ogg"
    return None


def _first_text(value: Any) -> str | None:
    """
    Mutagen returns different shapes depending on container/tag type:
    - ID3 frames (with a `.text` list)
    - lists of strings (Vorbis comments)
    - plain strings
    We normalize to a single stripped string (first item if multiple).
    """
    if value is None:
        return None

    if isinstance(value, (list, tuple)):
        if not value:
            return None
        return _first_text(value[0])

    text = getattr(value, "text", None)
    if text is not None:
        return _first_text(text)

    s = str(value).strip()
    return s if s else None


def is_candidate(kind: ReaderKind, path: Path) -> Candidacy:
    """
    Tell whether `kind` owns the format of the file at `path`.

    Raises OSError if the file cannot be read.
    """
    container = detect_container(_sniff(path))
    if container is None:
        return Candidacy.UNKNOWN
    return Candidacy.YES if container in _OWNED_CONTAINERS[kind] else Candidacy.NO


def _parse_id3(path: Path, container: str | None) -> dict[str, str]:
    if container == "wave":
        tags = WAVE(path).tags
    elif container == "aiff":
        tags = AIFF(path).tags
    else:
        # Also picks up ID3v1 trailers on bare MPEG streams.
        tags = ID3(path)

    if tags is None:
        return {}

    fields: dict[str, str] = {}
    for name, frame_id in ID3_FRAMES.items():
        value = _first_text(tags.get(frame_id))
        if value:
            fields[name] = value
    return fields


def _parse_vorbis(path: Path, container: str | None) -> dict[str, str]:
    if container == "ogg":
        audio = mutagen_file(path, options=OGG_FORMATS)
        if audio is None:
            raise TagReadError(f"{path.name}: not a supported Ogg stream")
    else:
        audio = FLAC(path)

    tags = audio.tags
    if tags is None:
        return {}

    fields: dict[str, str] = {}
    for name in TAG_FIELDS:
        # Vorbis comment keys are case-insensitive; values are lists.
        value = _first_text(tags.get(name))
        if value:
            fields[name] = value
    return fields


def parse(kind: ReaderKind, path: Path) -> dict[str, str]:
    """
    Read `title`/`artist`/`album` with the given reader.

    Raises:
        TagReadError: the tag block is missing or malformed for this reader.
        OSError: the file cannot be read.
    """
    container = detect_container(_sniff(path))
    try:
        if kind is ReaderKind.ID3:
            return _parse_id3(path, container)
        return _parse_vorbis(path, container)
    except (MutagenError, ValueError) as e:
        raise TagReadError(f"{kind.value} reader failed on {path.name}: {e}") from e


def extract_tags(
    path: Path, chain: tuple[ReaderKind, ...] = READER_CHAIN
) -> dict[str, str]:
    """
    Run the reader chain over `path`.

    Returns:
        Mapping of field name to text; empty if no reader matched.

    Raises:
        TagReadError: a reader that claimed the format failed to parse it.
        OSError: the file cannot be read.
    """
    for kind in chain:
        candidacy = is_candidate(kind, path)

        if candidacy is Candidacy.NO:
            continue

        if candidacy is Candidacy.YES:
            fields = parse(kind, path)
            logger.debug("%s reader matched %s: %s", kind.value, path, fields)
            return fields

        try:
            fields = parse(kind, path)
        except TagReadError as e:
            logger.debug("%s reader could not read %s: %s", kind.value, path, e)
            continue
        logger.debug("%s reader read undetected format %s: %s", kind.value, path, fields)
        return fields

    logger.debug("No tag reader matched %s", path)
    return {}
