"""Encode picked files into transport-ready attachments for draft requests."""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
from pathlib import Path

from ..editor.document_model import Attachment

_LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ATTACHMENT_BYTES = 20 * 1024 * 1024
ACCEPTED_MEDIA_KINDS: tuple[str, ...] = ("image", "audio", "video", "text")
ACCEPTED_MIME_TYPES: tuple[str, ...] = ("application/pdf",)
_FALLBACK_MIME_TYPE = "application/octet-stream"


class AttachmentError(ValueError):
    """Raised when a file cannot be turned into an attachment."""


class AttachmentCodec:
    """Converts raw file bytes + MIME type to :class:`Attachment` and back."""

    def __init__(self, *, max_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES) -> None:
        self._max_bytes = max(1, int(max_bytes))

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def supports(self, mime_type: str) -> bool:
        normalized = _normalize_mime(mime_type)
        if normalized in ACCEPTED_MIME_TYPES:
            return True
        return normalized.split("/", 1)[0] in ACCEPTED_MEDIA_KINDS

    def encode(self, name: str, data: bytes, mime_type: str | None = None) -> Attachment:
        """Encode ``data`` as base64, guessing the MIME type from ``name`` when absent."""

        resolved = _normalize_mime(mime_type) or _guess_mime(name)
        if not self.supports(resolved):
            raise AttachmentError(f"Unsupported attachment type '{resolved}' for {name}.")
        if len(data) > self._max_bytes:
            raise AttachmentError(
                f"Attachment {name} is {len(data)} bytes; the limit is {self._max_bytes} bytes."
            )
        payload = base64.b64encode(data).decode("ascii")
        _LOGGER.debug("Encoded attachment %s (%s, %d bytes)", name, resolved, len(data))
        return Attachment(name=name, mime_type=resolved, payload=payload)

    def from_path(self, path: Path | str, mime_type: str | None = None) -> Attachment:
        target = Path(path)
        if not target.exists():
            raise FileNotFoundError(target)
        return self.encode(target.name, target.read_bytes(), mime_type)

    def from_data_uri(self, name: str, uri: str, mime_type: str | None = None) -> Attachment:
        """Build an attachment from a ``data:`` URI as produced by browser file readers."""

        header, separator, payload = uri.partition("base64,")
        if not separator:
            # No header: the whole string is already plain base64
            header, payload = "", uri
        declared = header[len("data:") :].rstrip(";") if header.startswith("data:") else ""
        try:
            data = base64.b64decode(payload.strip(), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise AttachmentError(f"Attachment {name} is not valid base64 data.") from exc
        return self.encode(name, data, mime_type or declared or None)

    @staticmethod
    def decode(attachment: Attachment) -> bytes:
        """Return the raw bytes carried by ``attachment``."""

        return base64.b64decode(attachment.payload)


def _normalize_mime(mime_type: str | None) -> str:
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


def _guess_mime(name: str) -> str:
    guessed, _ = mimetypes.guess_type(name)
    return guessed or _FALLBACK_MIME_TYPE


__all__ = [
    "ACCEPTED_MEDIA_KINDS",
    "ACCEPTED_MIME_TYPES",
    "AttachmentCodec",
    "AttachmentError",
    "DEFAULT_MAX_ATTACHMENT_BYTES",
]
