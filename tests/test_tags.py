"""
Tests for tunecellar.ingest.tags (the tag reader chain).

These tests verify:
- Container sniffing and tri-state candidacy per reader
- ID3 and Vorbis comment extraction from real (minimal) MP3, WAVE, AIFF, FLAC
  and Ogg files
- Chain semantics: YES is authoritative, NO skips, UNKNOWN falls through
"""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import (
    build_aiff_bytes,
    build_flac_bytes,
    build_id3v1_mpeg_bytes,
    build_ogg_vorbis_bytes,
    build_wave_bytes,
)

from tunecellar.core import TagReadError
from tunecellar.ingest.tags import (
    READER_CHAIN,
    Candidacy,
    ReaderKind,
    _first_text,
    detect_container,
    extract_tags,
    is_candidate,
    parse,
)

# =============================================================================
# Container detection
# =============================================================================


class TestDetectContainer:
    """Tests for header sniffing."""

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            (b"ID3\x04\x00\x00\x00\x00\x00\x00", "id3"),
            (b"RIFF\x24\x00\x00\x00WAVE", "wave"),
            (b"FORM\x00\x00\x00\x00AIFF", "aiff"),
            (b"FORM\x00\x00\x00\x00AIFC", "aiff"),
            (b"fLaC\x00\x00\x00\x22", "flac"),
            (b"OggS\x00\x02\x00\x00", "ogg"),
            (b"\xff\xfb\x90\x00", None),
            (b"RIFF\x24\x00\x00\x00AVI ", None),
            (b"", None),
        ],
    )
    def test_detect(self, header: bytes, expected: str | None) -> None:
        assert detect_container(header) == expected


class TestCandidacy:
    """Tests for is_candidate()."""

    def test_id3_file(self, make_id3_file) -> None:
        path = make_id3_file(title="Song")
        assert is_candidate(ReaderKind.ID3, path) is Candidacy.YES
        assert is_candidate(ReaderKind.VORBIS, path) is Candidacy.NO

    def test_flac_file(self, make_flac_file) -> None:
        path = make_flac_file({"TITLE": ["Song"]})
        assert is_candidate(ReaderKind.ID3, path) is Candidacy.NO
        assert is_candidate(ReaderKind.VORBIS, path) is Candidacy.YES

    def test_wave_header_belongs_to_id3_reader(self, tmp_path: Path) -> None:
        path = tmp_path / "a.wav"
        path.write_bytes(b"RIFF\x24\x00\x00\x00WAVEfmt ")
        assert is_candidate(ReaderKind.ID3, path) is Candidacy.YES
        assert is_candidate(ReaderKind.VORBIS, path) is Candidacy.NO

    def test_unknown_format(self, tmp_path: Path) -> None:
        path = tmp_path / "noise.bin"
        path.write_bytes(b"not audio at all")
        for kind in READER_CHAIN:
            assert is_candidate(kind, path) is Candidacy.UNKNOWN

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            is_candidate(ReaderKind.ID3, tmp_path / "gone.mp3")


# =============================================================================
# Parsing
# =============================================================================


class TestParse:
    """Tests for the individual readers."""

    def test_id3_all_fields(self, make_id3_file) -> None:
        path = make_id3_file(title="Song", artist="Band", album="LP")
        assert parse(ReaderKind.ID3, path) == {"title": "Song", "artist": "Band", "album": "LP"}

    def test_id3_partial_fields(self, make_id3_file) -> None:
        path = make_id3_file(title="Only Title")
        assert parse(ReaderKind.ID3, path) == {"title": "Only Title"}

    def test_vorbis_all_fields(self, make_flac_file) -> None:
        path = make_flac_file({"TITLE": ["Song"], "ARTIST": ["Band"], "ALBUM": ["LP"]})
        assert parse(ReaderKind.VORBIS, path) == {"title": "Song", "artist": "Band", "album": "LP"}

    def test_vorbis_keys_are_case_insensitive(self, make_flac_file) -> None:
        path = make_flac_file({"title": ["lower"], "Artist": ["Mixed"]})
        assert parse(ReaderKind.VORBIS, path) == {"title": "lower", "artist": "Mixed"}

    def test_vorbis_first_value_wins(self, make_flac_file) -> None:
        path = make_flac_file({"ARTIST": ["First", "Second"]})
        assert parse(ReaderKind.VORBIS, path) == {"artist": "First"}

    def test_vorbis_blank_values_dropped(self, make_flac_file) -> None:
        path = make_flac_file({"TITLE": ["   "], "ALBUM": ["LP"]})
        assert parse(ReaderKind.VORBIS, path) == {"album": "LP"}

    def test_wrong_reader_raises(self, make_flac_file) -> None:
        path = make_flac_file({"TITLE": ["Song"]})
        with pytest.raises(TagReadError):
            parse(ReaderKind.ID3, path)


class TestFirstText:
    """Tests for the mutagen value normalizer."""

    def test_shapes(self) -> None:
        class Frame:
            text = ["  framed  "]

        assert _first_text(None) is None
        assert _first_text([]) is None
        assert _first_text(["a", "b"]) == "a"
        assert _first_text(Frame()) == "framed"
        assert _first_text("   ") is None


# =============================================================================
# Chain
# =============================================================================


class TestExtractTags:
    """Tests for the reader chain."""

    def test_id3_file(self, make_id3_file) -> None:
        path = make_id3_file(title="Song", artist="Band", album="LP")
        assert extract_tags(path) == {"title": "Song", "artist": "Band", "album": "LP"}

    def test_flac_file_skips_id3_reader(self, make_flac_file) -> None:
        path = make_flac_file({"TITLE": ["Song"], "ARTIST": ["Band"]})
        assert extract_tags(path) == {"title": "Song", "artist": "Band"}

    def test_no_reader_matches(self, tmp_path: Path) -> None:
        path = tmp_path / "noise.bin"
        path.write_bytes(b"not audio at all" * 8)
        assert extract_tags(path) == {}

    def test_unknown_format_read_by_fallthrough(self, tmp_path: Path) -> None:
        """A bare MPEG stream with an ID3v1 trailer is undetected but readable."""
        path = tmp_path / "bare.mp3"
        path.write_bytes(build_id3v1_mpeg_bytes(title="Old", artist="School", album="Tape"))
        assert extract_tags(path) == {"title": "Old", "artist": "School", "album": "Tape"}

    def test_claimed_format_parse_failure_is_fatal(self, tmp_path: Path) -> None:
        """A reader answering YES owns the file; its failure is not skipped."""
        path = tmp_path / "broken.flac"
        path.write_bytes(b"fLaC" + b"\x00" * 8)
        with pytest.raises(TagReadError):
            extract_tags(path)

    def test_claimed_id3_with_no_known_frames_is_empty(self, make_id3_file) -> None:
        path = make_id3_file()
        assert extract_tags(path) == {}

    def test_chain_order_is_respected(self, make_id3_file) -> None:
        """With only the Vorbis reader in the chain, an ID3 file yields nothing."""
        path = make_id3_file(title="Song")
        assert extract_tags(path, chain=(ReaderKind.VORBIS,)) == {}

    def test_vorbis_in_flac_bytes(self, tmp_path: Path) -> None:
        path = tmp_path / "x"
        path.write_bytes(build_flac_bytes({"ALBUM": ["Named Only By Bytes"]}))
        assert extract_tags(path) == {"album": "Named Only By Bytes"}

    def test_wave_with_id3_chunk(self, tmp_path: Path) -> None:
        path = tmp_path / "song.wav"
        build_wave_bytes(path, title="Song", artist="Band", album="LP")
        assert is_candidate(ReaderKind.ID3, path) is Candidacy.YES
        assert extract_tags(path) == {"title": "Song", "artist": "Band", "album": "LP"}

    def test_untagged_wave_is_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "plain.wav"
        build_wave_bytes(path, tagged=False)
        assert extract_tags(path) == {}

    def test_aiff_with_id3_chunk(self, tmp_path: Path) -> None:
        path = tmp_path / "song.aiff"
        build_aiff_bytes(path, title="Song", artist="Band", album="LP")
        assert is_candidate(ReaderKind.ID3, path) is Candidacy.YES
        assert extract_tags(path) == {"title": "Song", "artist": "Band", "album": "LP"}

    def test_ogg_vorbis(self, tmp_path: Path) -> None:
        path = tmp_path / "song.ogg"
        path.write_bytes(
            build_ogg_vorbis_bytes(
                {"TITLE": ["Song"], "ARTIST": ["Band", "Other"], "ALBUM": ["LP"]}
            )
        )
        assert is_candidate(ReaderKind.ID3, path) is Candidacy.NO
        assert is_candidate(ReaderKind.VORBIS, path) is Candidacy.YES
        assert extract_tags(path) == {"title": "Song", "artist": "Band", "album": "LP"}
