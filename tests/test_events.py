"""Unit tests for :mod:`inkwell.ui.events`."""

from __future__ import annotations

import gc

from inkwell.ui.events import (
    DocumentModified,
    EventBus,
    Event,
    HighlightChanged,
    NoticePosted,
    SelectionChanged,
    SuggestionsLoaded,
)


class TestEventBusSubscription:
    """Tests for subscribe and unsubscribe."""

    def test_subscribe_adds_handler(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.subscribe(NoticePosted, lambda e: None)

        assert bus.handler_count(NoticePosted) == 1

    def test_subscribe_same_handler_twice(self) -> None:
        """Subscribing the same handler twice results in two registrations."""
        bus: EventBus[Event] = EventBus()
        received: list[NoticePosted] = []

        def handler(event: NoticePosted) -> None:
            received.append(event)

        bus.subscribe(NoticePosted, handler)
        bus.subscribe(NoticePosted, handler)
        bus.publish(NoticePosted(message="twice"))

        assert len(received) == 2

    def test_unsubscribe_removes_one_registration(self) -> None:
        bus: EventBus[Event] = EventBus()

        def handler(event: NoticePosted) -> None:
            pass

        bus.subscribe(NoticePosted, handler)
        bus.subscribe(NoticePosted, handler)
        bus.unsubscribe(NoticePosted, handler)

        assert bus.handler_count(NoticePosted) == 1

    def test_unsubscribe_unknown_handler_is_safe(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.unsubscribe(NoticePosted, lambda e: None)
        bus.subscribe(NoticePosted, lambda e: None)
        bus.unsubscribe(HighlightChanged, lambda e: None)

        assert bus.handler_count() == 1


class TestEventBusPublish:
    """Tests for publish."""

    def test_publish_invokes_handlers_in_order(self) -> None:
        bus: EventBus[Event] = EventBus()
        order: list[int] = []

        bus.subscribe(HighlightChanged, lambda e: order.append(1))
        bus.subscribe(HighlightChanged, lambda e: order.append(2))
        bus.publish(HighlightChanged(text="word"))

        assert order == [1, 2]

    def test_publish_only_reaches_matching_type(self) -> None:
        bus: EventBus[Event] = EventBus()
        notices: list[NoticePosted] = []
        loads: list[SuggestionsLoaded] = []

        bus.subscribe(NoticePosted, notices.append)
        bus.subscribe(SuggestionsLoaded, loads.append)
        bus.publish(SuggestionsLoaded(suggestion_ids=("a", "b")))

        assert notices == []
        assert loads == [SuggestionsLoaded(suggestion_ids=("a", "b"))]

    def test_publish_without_handlers_is_safe(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.publish(DocumentModified(document_id="doc", version_id=2, content_hash="abc"))

    def test_publish_continues_after_handler_exception(self) -> None:
        """A raising handler is logged and the rest still run."""
        bus: EventBus[Event] = EventBus()
        received: list[int] = []

        def broken(event: SelectionChanged) -> None:
            raise ValueError("boom")

        bus.subscribe(SelectionChanged, lambda e: received.append(1))
        bus.subscribe(SelectionChanged, broken)
        bus.subscribe(SelectionChanged, lambda e: received.append(3))

        bus.publish(SelectionChanged(active=False))

        assert received == [1, 3]

    def test_handler_may_unsubscribe_during_publish(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[str] = []

        def once(event: NoticePosted) -> None:
            received.append(event.message)
            bus.unsubscribe(NoticePosted, once)

        bus.subscribe(NoticePosted, once)
        bus.publish(NoticePosted(message="first"))
        bus.publish(NoticePosted(message="second"))

        assert received == ["first"]


class TestEventBusWeakReferences:
    """Bound methods are held weakly; plain functions strongly."""

    def test_bound_method_handler_cleaned_up_on_gc(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[NoticePosted] = []

        class Subscriber:
            def handle(self, event: NoticePosted) -> None:
                received.append(event)

        subscriber = Subscriber()
        bus.subscribe(NoticePosted, subscriber.handle)
        bus.publish(NoticePosted(message="before gc"))

        del subscriber
        gc.collect()
        bus.publish(NoticePosted(message="after gc"))

        assert [event.message for event in received] == ["before gc"]
        assert bus.handler_count(NoticePosted) == 0

    def test_function_handler_survives_gc(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[NoticePosted] = []

        bus.subscribe(NoticePosted, lambda e: received.append(e))
        gc.collect()
        bus.publish(NoticePosted(message="kept"))

        assert len(received) == 1

    def test_unsubscribe_bound_method(self) -> None:
        bus: EventBus[Event] = EventBus()

        class Subscriber:
            def handle(self, event: NoticePosted) -> None:
                pass

        subscriber = Subscriber()
        bus.subscribe(NoticePosted, subscriber.handle)
        bus.unsubscribe(NoticePosted, subscriber.handle)

        assert bus.handler_count(NoticePosted) == 0


class TestEventBusClear:
    def test_clear_removes_all_handlers(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.subscribe(NoticePosted, lambda e: None)
        bus.subscribe(HighlightChanged, lambda e: None)
        assert bus.handler_count() == 2

        bus.clear()

        assert bus.handler_count() == 0
