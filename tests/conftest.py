"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

SAMPLE_DOCUMENT = (
    "# Quarterly Update\n\n"
    "The team shipped the new onboarding flow this quarter. "
    "It was a really big deal for us and the numbers went up a lot.\n\n"
    "Next quarter we will focus on retention and on making the product faster.\n"
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep tests away from the developer's real settings, logs and keys."""

    for name in (
        "INKWELL_API_KEY",
        "INKWELL_BASE_URL",
        "INKWELL_MODEL",
        "INKWELL_FAST_MODEL",
        "INKWELL_ORGANIZATION",
        "INKWELL_DEBUG",
        "INKWELL_DEBUG_LOGGING",
        "INKWELL_REQUEST_TIMEOUT",
        "INKWELL_TEMPERATURE",
        "INKWELL_MAX_RETRIES",
        "INKWELL_SETTINGS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("INKWELL_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def sample_document() -> str:
    return SAMPLE_DOCUMENT
