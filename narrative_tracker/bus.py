"""In-process publish/subscribe for tracker change events.

Delivery is synchronous, in subscriber-registration order, inside the same
call that produced the event. A handler that raises is logged and skipped;
later handlers still receive the event.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from narrative_tracker.models import ChangeEvent, EventKind

logger = logging.getLogger(__name__)

Handler = Callable[[ChangeEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: dict[EventKind, list[Handler]] = {kind: [] for kind in EventKind}

    def subscribe(self, kind: EventKind | str, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a callable that removes it again."""
        event_kind = _coerce(kind)
        self._subscribers[event_kind].append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers[event_kind]
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscriber_count(self, kind: EventKind | str) -> int:
        return len(self._subscribers[_coerce(kind)])

    def emit(self, kind: EventKind | str, payload: dict | None = None, *, cursor: int = -1) -> ChangeEvent:
        event = ChangeEvent(kind=_coerce(kind), payload=payload or {}, emitted_at_cursor=cursor)
        self.publish(event)
        return event

    def publish(self, event: ChangeEvent) -> None:
        # Copy so handlers may unsubscribe while being called.
        for handler in list(self._subscribers[event.kind]):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event handler %r failed for %s at cursor %d",
                    handler, event.kind.value, event.emitted_at_cursor,
                )

    def publish_all(self, events: list[ChangeEvent]) -> None:
        for event in events:
            self.publish(event)


def _coerce(kind: EventKind | str) -> EventKind:
    if isinstance(kind, EventKind):
        return kind
    try:
        return EventKind(kind)
    except ValueError:
        raise ValueError(f"Unknown event kind: {kind!r}") from None
