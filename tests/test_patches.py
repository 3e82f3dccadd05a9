"""Tests for the span replacement helpers."""

from __future__ import annotations

import pytest

from inkwell.editor.patches import PatchApplyError, replace_first_occurrence, replace_span


def test_replace_span_returns_new_buffer() -> None:
    original = "alpha beta gamma"

    result = replace_span(original, 6, 10, "BETA", match_text="beta")

    assert result.text == "alpha BETA gamma"
    assert result.span == (6, 10)
    assert result.changed
    assert original == "alpha beta gamma"


def test_replace_span_detects_moved_content() -> None:
    with pytest.raises(PatchApplyError) as excinfo:
        replace_span("alpha beta gamma", 0, 4, "x", match_text="beta")

    assert excinfo.value.reason == "range_mismatch"
    assert excinfo.value.details() == {"reason": "range_mismatch", "expected": "beta", "actual": "alph"}


def test_replace_span_rejects_out_of_range_offsets() -> None:
    with pytest.raises(PatchApplyError) as excinfo:
        replace_span("short", 2, 50, "x", match_text="ort")

    assert excinfo.value.reason == "range_overflow"


def test_identical_replacement_is_a_no_op() -> None:
    result = replace_span("same", 0, 4, "same", match_text="same")

    assert not result.changed


def test_replace_first_occurrence_is_leftmost() -> None:
    result = replace_first_occurrence("one two one", "one", "1")

    assert result.text == "1 two one"


@pytest.mark.parametrize(("target", "reason"), [("", "empty_target"), ("three", "target_missing")])
def test_replace_first_occurrence_failures(target: str, reason: str) -> None:
    with pytest.raises(PatchApplyError) as excinfo:
        replace_first_occurrence("one two", target, "x")

    assert excinfo.value.reason == reason
