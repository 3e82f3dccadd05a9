"""Atomic file writes shared by settings, exports and the CLI."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

__all__ = ["write_bytes", "write_text"]


def write_bytes(path: Path | str, data: bytes) -> Path:
    """Write ``data`` to a temp file beside ``path`` and move it into place.

    Readers see either the old file or the complete new one, never a partial write.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    descriptor, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(descriptor, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            os.unlink(tmp_name)
    return target


def write_text(path: Path | str, content: str, *, encoding: str = "utf-8") -> Path:
    return write_bytes(path, content.encode(encoding))
