"""Tests for the logging bootstrap helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from inkwell.utils import logging as logging_utils


def test_setup_logging_writes_rotating_file(tmp_path: Path) -> None:
    log_path = logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)

    logging_utils.get_logger("inkwell.tests").info("hello log")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_path == tmp_path / "inkwell.log"
    assert logging_utils.get_log_path() == log_path
    assert "hello log" in log_path.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_is_idempotent_without_force(tmp_path: Path) -> None:
    first = logging_utils.setup_logging(log_dir=tmp_path / "a", console=False, force=True)

    second = logging_utils.setup_logging(log_dir=tmp_path / "b", console=False)

    assert second == first
    assert not (tmp_path / "b").exists()


def test_log_dir_falls_back_to_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INKWELL_LOG_DIR", str(tmp_path / "env-logs"))

    log_path = logging_utils.setup_logging(console=False, force=True)

    assert log_path.parent == tmp_path / "env-logs"


def test_base64_payloads_are_abbreviated() -> None:
    payload = "QUJD" * 200
    uri = f"data:image/png;base64,{payload}"
    record = logging.LogRecord("inkwell", logging.DEBUG, __file__, 1, "payload %s", (uri,), None)

    assert logging_utils.Base64PayloadFilter(keep=8).filter(record) is True

    message = record.getMessage()
    assert message == "payload data:image/png;base64,QUJDQUJD...<800 base64 chars>"


def test_short_messages_are_untouched() -> None:
    record = logging.LogRecord("inkwell", logging.INFO, __file__, 1, "hello %s", ("world",), None)

    logging_utils.Base64PayloadFilter().filter(record)

    assert record.getMessage() == "hello world"
    assert record.args == ("world",)
