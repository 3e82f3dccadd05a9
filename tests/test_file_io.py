"""Tests for the atomic file write helpers."""

from __future__ import annotations

from pathlib import Path

from inkwell.utils import file_io


def test_write_text_creates_parents_and_replaces_content(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "notes.md"

    file_io.write_text(target, "first")
    written = file_io.write_text(target, "second ✓")

    assert written == target
    assert target.read_text(encoding="utf-8") == "second ✓"


def test_write_bytes_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "export.doc"

    file_io.write_bytes(target, b"\xef\xbb\xbfbody")

    assert target.read_bytes() == b"\xef\xbb\xbfbody"
    assert [path.name for path in tmp_path.iterdir()] == ["export.doc"]
