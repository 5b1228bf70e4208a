"""Tests for the in-process event bus."""

import logging

import pytest

from narrative_tracker.bus import EventBus
from narrative_tracker.models import ChangeEvent, EventKind


def test_delivery_in_registration_order() -> None:
    bus = EventBus()
    seen: list[str] = []
    bus.subscribe(EventKind.WEATHER_CHANGED, lambda e: seen.append("first"))
    bus.subscribe("weatherChanged", lambda e: seen.append("second"))
    bus.emit(EventKind.WEATHER_CHANGED, {"weather": "rain"}, cursor=3)
    assert seen == ["first", "second"]


def test_emit_returns_event() -> None:
    event = EventBus().emit("timeChanged", {"time_of_day": "dusk"}, cursor=1)
    assert event == ChangeEvent(kind=EventKind.TIME_CHANGED, payload={"time_of_day": "dusk"},
                                emitted_at_cursor=1)


def test_only_matching_kind_delivered() -> None:
    bus = EventBus()
    seen = []
    bus.subscribe(EventKind.COMBAT_STARTED, seen.append)
    bus.emit(EventKind.COMBAT_ENDED)
    assert seen == []


def test_unsubscribe() -> None:
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(EventKind.ITEM_NOTED, seen.append)
    unsubscribe()
    unsubscribe()  # second call is a no-op
    bus.emit(EventKind.ITEM_NOTED)
    assert seen == []
    assert bus.subscriber_count(EventKind.ITEM_NOTED) == 0


def test_failing_handler_isolated(caplog) -> None:
    bus = EventBus()
    seen = []

    def boom(event):
        raise RuntimeError("handler broke")

    bus.subscribe(EventKind.CONTEXT_UPDATED, boom)
    bus.subscribe(EventKind.CONTEXT_UPDATED, seen.append)
    with caplog.at_level(logging.ERROR, logger="narrative_tracker.bus"):
        bus.emit(EventKind.CONTEXT_UPDATED, {"cursor": 0}, cursor=0)
    assert len(seen) == 1
    assert "handler broke" in caplog.text


def test_handler_may_unsubscribe_during_delivery() -> None:
    bus = EventBus()
    seen = []
    unsubscribe = None

    def once(event):
        seen.append("once")
        unsubscribe()

    unsubscribe = bus.subscribe(EventKind.TERRAIN_CHANGED, once)
    bus.subscribe(EventKind.TERRAIN_CHANGED, lambda e: seen.append("always"))
    bus.emit(EventKind.TERRAIN_CHANGED)
    bus.emit(EventKind.TERRAIN_CHANGED)
    assert seen == ["once", "always", "always"]


def test_unknown_kind_is_an_error() -> None:
    bus = EventBus()
    with pytest.raises(ValueError, match="Unknown event kind"):
        bus.emit("dragonSighted")
    with pytest.raises(ValueError):
        bus.subscribe("dragonSighted", lambda e: None)
