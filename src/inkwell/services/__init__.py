"""Service layer helpers (attachments, export, settings)."""

from .attachments import AttachmentCodec, AttachmentError
from .settings import Settings, SettingsStore

__all__ = ["AttachmentCodec", "AttachmentError", "Settings", "SettingsStore"]
