"""Logging bootstrap for Inkwell sessions.

Records always go to a rotating file under ``~/.inkwell/logs``. The console
handler writes to stderr because stdout carries document output, and it only
shows warnings unless the session runs at DEBUG.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys
from pathlib import Path

__all__ = ["Base64PayloadFilter", "get_log_path", "get_logger", "setup_logging"]

LOG_FILE_NAME = "inkwell.log"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_DEFAULT_LOG_DIR = Path.home() / ".inkwell" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai", "markdown_it")
_BASE64_RUN = re.compile(r"[A-Za-z0-9+/]{256,}={0,2}")
_LOG_PATH: Path | None = None


class Base64PayloadFilter(logging.Filter):
    """Abbreviates long base64 runs (attachment payloads) in log messages."""

    def __init__(self, keep: int = 24) -> None:
        super().__init__()
        self._keep = keep

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        shortened, count = _BASE64_RUN.subn(self._abbreviate, message)
        if count:
            record.msg = shortened
            record.args = None
        return True

    def _abbreviate(self, match: re.Match[str]) -> str:
        payload = match.group(0)
        return f"{payload[: self._keep]}...<{len(payload)} base64 chars>"


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Route root logging to the rotating log file and, optionally, stderr.

    Later calls return the existing log path unless ``force`` is set; the CLI
    forces a second pass when persisted settings turn on debug logging.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    log_path = _resolve_log_dir(log_dir) / LOG_FILE_NAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(level)
    handlers: list[logging.Handler] = [file_handler]
    if console:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(level if level <= logging.DEBUG else logging.WARNING)
        handlers.append(stderr_handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    payload_filter = Base64PayloadFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(payload_filter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    quiet_level = max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _LOG_PATH = log_path
    return log_path


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_log_path() -> Path | None:
    """Return the active log file, or ``None`` before :func:`setup_logging` ran."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    configured = log_dir or os.environ.get("INKWELL_LOG_DIR") or _DEFAULT_LOG_DIR
    return Path(configured).expanduser()
