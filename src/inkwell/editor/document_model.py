"""Dataclasses representing editor document state and snapshots."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict

PLACEHOLDER_TEXT = "# Untitled Draft\n\nStart writing here..."


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


class EditorMode(Enum):
    """Top-level session mode; the only transition is WELCOME -> EDITING."""

    WELCOME = "welcome"
    EDITING = "editing"


class ViewMode(Enum):
    """Which representation the user is currently editing."""

    RICH_TEXT = "rich_text"
    MARKDOWN = "markdown"


class RequestState(Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"


class RequestKind(Enum):
    """Generative operation associated with an in-flight request."""

    DRAFT = "draft"
    REFINE = "refine"
    SCAN = "scan"


@dataclass(frozen=True, slots=True)
class Attachment:
    """Encoded file carried by a single draft request.

    ``payload`` is plain base64 without any ``data:`` header.
    """

    name: str
    mime_type: str
    payload: str

    @property
    def media_kind(self) -> str:
        return self.mime_type.split("/", 1)[0].lower() if self.mime_type else ""

    @property
    def is_spoken_media(self) -> bool:
        return self.media_kind in {"audio", "video"}

    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.payload}"


@dataclass(frozen=True, slots=True)
class Selection:
    """Snapshot of a contiguous span captured at a single document version."""

    start: int
    end: int
    text: str


@dataclass(frozen=True, slots=True)
class Suggestion:
    """Improvement proposed by a scan: replace ``original_text`` with ``suggested_text``."""

    id: str
    original_text: str
    suggested_text: str
    reason: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "originalText": self.original_text,
            "suggestedText": self.suggested_text,
            "reason": self.reason,
        }


@dataclass(slots=True)
class DocumentState:
    """Canonical Markdown buffer plus version metadata."""

    text: str = ""
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version_id: int = 1
    content_hash: str = field(default_factory=str)
    dirty: bool = False
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.content_hash:
            self.content_hash = _hash_text(self.text)

    def update_text(self, new_text: str) -> None:
        """Swap in a new buffer and bump the version."""

        self.text = new_text
        self.dirty = True
        self.updated_at = _utcnow()
        self.version_id += 1
        self.content_hash = _hash_text(new_text)


__all__ = [
    "Attachment",
    "DocumentState",
    "EditorMode",
    "PLACEHOLDER_TEXT",
    "RequestKind",
    "RequestState",
    "Selection",
    "Suggestion",
    "ViewMode",
]
