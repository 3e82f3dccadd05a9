"""Tests for the selection tracker state machine."""

from __future__ import annotations

from inkwell.editor.document_model import Selection
from inkwell.editor.selection import NO_SELECTION, ActiveSelection, AnchorPoint, NoSelection, SelectionTracker

TEXT = "Hello brave new world"


def test_pointer_release_activates_with_span_and_anchor() -> None:
    tracker = SelectionTracker()

    state = tracker.pointer_release(TEXT, 6, 11, anchor=(120.0, 40.5))

    assert isinstance(state, ActiveSelection)
    assert tracker.selection == Selection(6, 11, "brave")
    assert tracker.anchor == AnchorPoint(120.0, 40.5)
    assert tracker.is_active()


def test_empty_or_whitespace_span_collapses() -> None:
    tracker = SelectionTracker()
    tracker.pointer_release(TEXT, 0, 5)

    assert tracker.pointer_release(TEXT, 3, 3) is NO_SELECTION
    tracker.pointer_release(TEXT, 0, 5)
    assert isinstance(tracker.pointer_release(TEXT, 5, 6), NoSelection)


def test_offsets_are_clamped_and_ordered() -> None:
    tracker = SelectionTracker()

    tracker.pointer_release(TEXT, 500, 16)

    assert tracker.selection == Selection(16, len(TEXT), "world")


def test_intermediate_changes_never_activate() -> None:
    tracker = SelectionTracker()

    tracker.selection_changed(0, 5)

    assert tracker.state is NO_SELECTION


def test_intermediate_collapse_clears_active_selection() -> None:
    tracker = SelectionTracker()
    tracker.pointer_release(TEXT, 0, 5)

    tracker.selection_changed(0, 8)
    assert tracker.is_active()

    tracker.selection_changed(4, 4)
    assert not tracker.is_active()


def test_invalidate_drops_span_after_mutation() -> None:
    tracker = SelectionTracker()
    tracker.pointer_release(TEXT, 0, 5)

    tracker.invalidate()

    assert tracker.state is NO_SELECTION
    assert tracker.selection is None
    assert tracker.anchor is None


def test_listener_notified_once_per_transition() -> None:
    seen: list[object] = []
    tracker = SelectionTracker(listener=seen.append)

    tracker.pointer_release(TEXT, 0, 5)
    tracker.pointer_release(TEXT, 0, 5)
    tracker.clear()
    tracker.clear()

    assert len(seen) == 2
    assert isinstance(seen[0], ActiveSelection)
    assert seen[1] is NO_SELECTION
