"""Tests for the export sinks."""

from __future__ import annotations

from pathlib import Path

import pytest

from inkwell.services.export import clipboard_payload, html_document, word_document, write_export

DOCUMENT = "# Launch Plan\n\nShip it **soon**.\n"


def test_word_document_has_bom_and_office_namespaces() -> None:
    payload = word_document(DOCUMENT)

    assert payload.startswith("\ufeff".encode("utf-8"))
    body = payload.decode("utf-8-sig")
    assert "urn:schemas-microsoft-com:office:word" in body
    assert "Times New Roman" in body
    assert "<strong>soon</strong>" in body
    assert "<title>Launch Plan</title>" in body


def test_title_prefers_explicit_then_front_matter() -> None:
    with_front_matter = "---\ntitle: From Header\n---\n\n# Heading\n"

    assert "<title>Chosen</title>" in html_document(with_front_matter, title="Chosen")
    assert "<title>From Header</title>" in html_document(with_front_matter)
    assert "<title>Document</title>" in html_document("plain text only")


def test_title_is_escaped() -> None:
    assert "<title>R&amp;D</title>" in html_document("# R&D\n")


def test_html_document_is_standalone() -> None:
    output = html_document(DOCUMENT)

    assert output.startswith("<!DOCTYPE html>")
    assert "<h1>Launch Plan</h1>" in output


def test_clipboard_payload_flavours() -> None:
    rich = clipboard_payload(DOCUMENT)
    plain = clipboard_payload(DOCUMENT, rich=False)

    assert rich.plain == DOCUMENT
    assert rich.html is not None and "<h1>Launch Plan</h1>" in rich.html
    assert plain.html is None


@pytest.mark.parametrize(("fmt", "marker"), [("doc", b"\xef\xbb\xbf"), ("html", b"<!DOCTYPE html>")])
def test_write_export_writes_file(tmp_path: Path, fmt: str, marker: bytes) -> None:
    target = write_export(tmp_path / "out" / f"plan.{fmt}", DOCUMENT, fmt=fmt)  # type: ignore[arg-type]

    assert target.exists()
    assert target.read_bytes().startswith(marker)


def test_write_export_rejects_unknown_format(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        write_export(tmp_path / "plan.pdf", DOCUMENT, fmt="pdf")  # type: ignore[arg-type]

    assert not (tmp_path / "plan.pdf").exists()
