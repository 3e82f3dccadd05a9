"""Typed events published by the session controller.

The controller never calls into a front end directly. It publishes the events
below and whatever is attached (the CLI, a desktop shell, tests) subscribes to
the ones it renders.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all session events."""


@dataclass(slots=True)
class ModeChanged(Event):
    """Emitted once, when the session leaves the welcome screen.

    Attributes:
        mode: The new editor mode value (``"editing"``).
    """

    mode: str


@dataclass(slots=True)
class ViewModeChanged(Event):
    """Emitted when the user toggles between rich-text and Markdown views."""

    view_mode: str


@dataclass(slots=True)
class DocumentModified(Event):
    """Emitted after every committed document mutation.

    Attributes:
        document_id: The identifier of the session document.
        version_id: The version number after the mutation.
        content_hash: Hash of the new buffer.
        source: What produced the change (``draft``, ``refine``, ``suggestion``,
            ``edit``, ``structured`` or ``placeholder``).
    """

    document_id: str
    version_id: int
    content_hash: str
    source: str = "edit"


@dataclass(slots=True)
class RequestStateChanged(Event):
    """Emitted when the single in-flight guard is taken or released.

    Attributes:
        state: ``"idle"`` or ``"in_flight"``.
        kind: The generative operation holding the guard, if any.
        token: Identifier of the request the transition belongs to.
    """

    state: str
    kind: str | None = None
    token: str | None = None


@dataclass(slots=True)
class DraftChunkReceived(Event):
    """One text delta of a streamed draft, tagged with its request token."""

    token: str
    content: str


@dataclass(slots=True)
class SelectionChanged(Event):
    """Emitted when the refine toolbar should appear or disappear."""

    active: bool
    start: int | None = None
    end: int | None = None
    anchor: tuple[float, float] | None = None


@dataclass(slots=True)
class SuggestionsLoaded(Event):
    """Emitted when a scan replaces the pending suggestion batch.

    Attributes:
        suggestion_ids: Ids of the new batch in display order; empty when the
            scan produced nothing or failed to parse.
    """

    suggestion_ids: tuple[str, ...]


@dataclass(slots=True)
class SuggestionRetired(Event):
    """Emitted when a suggestion is applied or dismissed."""

    suggestion_id: str
    applied: bool


@dataclass(slots=True)
class HighlightChanged(Event):
    text: str | None


@dataclass(slots=True)
class NoticePosted(Event):
    """A user-facing notice.

    Attributes:
        message: Text to display.
        level: ``info``, ``warning``, ``error`` or ``fatal``.
        error_code: Machine-readable code when the notice reports an error.
    """

    message: str
    level: str = "info"
    error_code: str | None = None


# Published often enough that per-publish debug logging drowns the log file.
_QUIET_EVENT_TYPES: frozenset[type[Event]] = frozenset({DocumentModified, DraftChunkReceived})

# Zero-argument callable returning the live handler, or None once collected.
_Resolver = Callable[[], "Handler[Any] | None"]


def _resolver_for(handler: Handler[Any]) -> _Resolver:
    """Hold bound methods weakly so a discarded view stops receiving events."""

    if getattr(handler, "__func__", None) is not None and getattr(handler, "__self__", None) is not None:
        try:
            return WeakMethod(handler)  # type: ignore[arg-type]
        except TypeError:
            pass
    return lambda: handler


def _describe(handler: Any) -> str:
    owner = getattr(handler, "__self__", None)
    func = getattr(handler, "__func__", None)
    if owner is not None and func is not None:
        return f"{type(owner).__name__}.{func.__name__}"
    return getattr(handler, "__name__", None) or repr(handler)


class EventBus(Generic[E]):
    """Synchronous publish-subscribe dispatch keyed on the exact event class.

    Handlers run in registration order on the publishing thread. A handler
    that raises is logged and the remaining handlers still run. Not
    thread-safe.
    """

    __slots__ = ("_subscribers",)

    def __init__(self) -> None:
        self._subscribers: Dict[type[Event], List[_Resolver]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler``; subscribing it twice delivers each event twice."""

        self._subscribers[event_type].append(_resolver_for(handler))
        logger.debug("%s subscribed to %s", _describe(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Drop the earliest registration of ``handler``; unknown handlers are ignored."""

        resolvers = self._subscribers.get(event_type, [])
        for index, resolve in enumerate(resolvers):
            if resolve() == handler:
                del resolvers[index]
                logger.debug("%s unsubscribed from %s", _describe(handler), event_type.__name__)
                return

    def publish(self, event: E) -> None:
        event_type = type(event)
        resolvers = self._subscribers.get(event_type)
        if event_type not in _QUIET_EVENT_TYPES:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(resolvers or ()))
        if not resolvers:
            return

        collected = False
        for resolve in tuple(resolvers):
            handler = resolve()
            if handler is None:
                collected = True
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %s failed on %s", _describe(handler), event_type.__name__)

        if collected:
            resolvers[:] = [resolve for resolve in resolvers if resolve() is not None]

    def clear(self) -> None:
        self._subscribers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return registrations for ``event_type``, or across all types."""

        if event_type is None:
            return sum(len(resolvers) for resolvers in self._subscribers.values())
        return len(self._subscribers.get(event_type, ()))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "DocumentModified",
    "DraftChunkReceived",
    "HighlightChanged",
    "ModeChanged",
    "NoticePosted",
    "RequestStateChanged",
    "SelectionChanged",
    "SuggestionRetired",
    "SuggestionsLoaded",
    "ViewModeChanged",
]
