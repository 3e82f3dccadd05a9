"""Tests for the attachment codec."""

from __future__ import annotations

from pathlib import Path

import pytest

from inkwell.services.attachments import AttachmentCodec, AttachmentError


def test_encode_produces_base64_payload() -> None:
    attachment = AttachmentCodec().encode("photo.png", b"\x89PNG", "image/png")

    assert attachment.mime_type == "image/png"
    assert attachment.payload == "iVBORw=="
    assert attachment.data_uri() == "data:image/png;base64,iVBORw=="


def test_encode_guesses_mime_type_from_name() -> None:
    attachment = AttachmentCodec().encode("notes.txt", b"hello")

    assert attachment.mime_type == "text/plain"


def test_encode_strips_mime_parameters() -> None:
    attachment = AttachmentCodec().encode("clip", b"abc", "Audio/WAV; codecs=1")

    assert attachment.mime_type == "audio/wav"
    assert attachment.is_spoken_media


@pytest.mark.parametrize("mime_type", ["application/zip", "application/octet-stream"])
def test_unsupported_types_are_rejected(mime_type: str) -> None:
    with pytest.raises(AttachmentError):
        AttachmentCodec().encode("archive", b"PK", mime_type)


def test_pdf_is_supported() -> None:
    assert AttachmentCodec().supports("application/pdf")


def test_size_limit_is_enforced() -> None:
    codec = AttachmentCodec(max_bytes=4)

    with pytest.raises(AttachmentError):
        codec.encode("big.txt", b"12345", "text/plain")


def test_from_data_uri_uses_declared_type() -> None:
    codec = AttachmentCodec()

    attachment = codec.from_data_uri("voice", "data:audio/mpeg;base64,aGVsbG8=")

    assert attachment.mime_type == "audio/mpeg"
    assert codec.decode(attachment) == b"hello"


def test_from_data_uri_rejects_invalid_base64() -> None:
    with pytest.raises(AttachmentError):
        AttachmentCodec().from_data_uri("bad", "data:image/png;base64,@@not-base64@@")


def test_from_path_reads_file(tmp_path: Path) -> None:
    target = tmp_path / "brief.txt"
    target.write_text("# Brief", encoding="utf-8")

    attachment = AttachmentCodec().from_path(target)

    assert attachment.name == "brief.txt"
    assert attachment.media_kind == "text"


def test_from_path_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        AttachmentCodec().from_path(tmp_path / "missing.png")
