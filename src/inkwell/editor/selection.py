"""Selection tracking for the floating refine toolbar."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

from .document_model import Selection

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AnchorPoint:
    """Screen coordinate the floating toolbar is pinned to."""

    x: float
    y: float


@dataclass(frozen=True, slots=True)
class NoSelection:
    """Tracker state when nothing actionable is selected."""

    @property
    def is_active(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class ActiveSelection:
    """Tracker state holding a span snapshot and its anchor."""

    selection: Selection
    anchor: AnchorPoint | None = None

    @property
    def is_active(self) -> bool:
        return True


SelectionTrackerState = Union[NoSelection, ActiveSelection]
SelectionListener = Callable[[SelectionTrackerState], None]

NO_SELECTION = NoSelection()


class SelectionTracker:
    """Two-state machine: ``NoSelection`` and ``Active(span, anchor)``.

    Only completed selections (pointer release) activate the tracker so the
    toolbar does not flicker while a drag is in progress. Any document
    mutation must call :meth:`invalidate`; a span is never carried across
    edits.
    """

    def __init__(self, listener: SelectionListener | None = None) -> None:
        self._state: SelectionTrackerState = NO_SELECTION
        self._listener = listener

    @property
    def state(self) -> SelectionTrackerState:
        return self._state

    @property
    def selection(self) -> Selection | None:
        if isinstance(self._state, ActiveSelection):
            return self._state.selection
        return None

    @property
    def anchor(self) -> AnchorPoint | None:
        if isinstance(self._state, ActiveSelection):
            return self._state.anchor
        return None

    def is_active(self) -> bool:
        return self._state.is_active

    def pointer_release(
        self,
        text: str,
        start: int,
        end: int,
        anchor: AnchorPoint | tuple[float, float] | None = None,
    ) -> SelectionTrackerState:
        """Finish a selection gesture over ``text`` and capture the span."""

        start, end = _clamp_range(start, end, len(text))
        span_text = text[start:end]
        if start == end or not span_text.strip():
            return self._transition(NO_SELECTION)
        if isinstance(anchor, tuple):
            anchor = AnchorPoint(float(anchor[0]), float(anchor[1]))
        return self._transition(ActiveSelection(Selection(start, end, span_text), anchor))

    def selection_changed(self, start: int, end: int) -> SelectionTrackerState:
        """Handle an intermediate selection update; only ever collapses."""

        if start == end:
            return self._transition(NO_SELECTION)
        return self._state

    def invalidate(self) -> SelectionTrackerState:
        """Drop the span because the document changed."""

        if self._state.is_active:
            LOGGER.debug("Selection invalidated by document mutation")
        return self._transition(NO_SELECTION)

    def clear(self) -> SelectionTrackerState:
        return self._transition(NO_SELECTION)

    def _transition(self, state: SelectionTrackerState) -> SelectionTrackerState:
        if state == self._state:
            return self._state
        self._state = state
        if self._listener is not None:
            self._listener(state)
        return state


def _clamp_range(start: int, end: int, length: int) -> tuple[int, int]:
    start = max(0, min(int(start), length))
    end = max(0, min(int(end), length))
    if end < start:
        start, end = end, start
    return start, end


__all__ = [
    "ActiveSelection",
    "AnchorPoint",
    "NO_SELECTION",
    "NoSelection",
    "SelectionTracker",
    "SelectionTrackerState",
]
