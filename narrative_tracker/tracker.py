"""Per-conversation tracker — the seam between the host app and the core.

A ConversationTracker owns one conversation's Synchronizer, EventBus and
GateEvaluator. The host tells it "message N is available" via ingest(); the
tracker folds it in, latches gates, publishes events, and schedules a
background write of the new state. Reads of ``tracker.store`` always see the
in-memory state, whether or not that write has finished.

Recovery:
  - ingest() of an index beyond the cursor → rebuild from stored history
  - ingest() of an index already folded    → ignored
  - rebuild() of a malformed history        → empty store, available=False
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from narrative_tracker.bus import EventBus
from narrative_tracker.extraction import Matcher
from narrative_tracker.gates import DEFAULT_GATE_TAGS, GateEvaluator
from narrative_tracker.models import (
    ChangeEvent,
    EventKind,
    Message,
    PersistedState,
    SequenceError,
    StateStore,
    TrackerError,
)
from narrative_tracker.storage import Storage, slugify
from narrative_tracker.sync import ACTIVITY_LIMIT, Synchronizer

logger = logging.getLogger(__name__)

UNAVAILABLE_STATUS = "Automatic tracking is temporarily unavailable"
READY_STATUS = "ok"

DEFAULT_SETTINGS: dict[str, Any] = {
    "auto_parse": True,
    "parse_player_messages": True,
    "activity_limit": ACTIVITY_LIMIT,
    "gates": DEFAULT_GATE_TAGS,
}


class ConversationTracker:
    def __init__(
        self,
        conversation_id: str,
        storage: Storage,
        *,
        bus: EventBus | None = None,
        matcher: Matcher | None = None,
        gates: GateEvaluator | None = None,
        settings: dict[str, Any] | None = None,
        store: StateStore | None = None,
    ) -> None:
        merged = {**DEFAULT_SETTINGS, **(settings or {})}
        self.conversation_id = conversation_id
        self.bus = bus or EventBus()
        self.gates = gates or GateEvaluator.from_tags(merged["gates"])
        self.auto_parse: bool = merged["auto_parse"]
        self.extensions: dict[str, Any] = {}

        self._storage = storage
        self._sync = Synchronizer(
            self.bus,
            matcher,
            store,
            parse_player=merged["parse_player_messages"],
            activity_limit=merged["activity_limit"],
            observer=self.gates.observe,
        )
        self._lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()
        self._snapshot_seq = 0
        self._written_seq = 0

        self.available = True
        self.status = READY_STATUS
        self.persistence_warning: str | None = None

    # ------------------------------------------------------------------
    # Construction from disk
    # ------------------------------------------------------------------

    @classmethod
    async def open(
        cls,
        conversation_id: str,
        storage: Storage,
        **kwargs: Any,
    ) -> ConversationTracker:
        """Resume a conversation from its stored state.

        Missing or outdated state is rebuilt from the message log, keeping
        whatever gate states can still be read from it. Stored
        state that lags behind the log is caught up message by message.
        """
        persisted = storage.load_state(conversation_id)
        if "gates" not in kwargs:
            settings = {**DEFAULT_SETTINGS, **(kwargs.get("settings") or {})}
            stored = persisted.gates if persisted else storage.load_gates(conversation_id)
            kwargs["gates"] = GateEvaluator.from_tags(settings["gates"], stored)

        if persisted is None:
            tracker = cls(conversation_id, storage, **kwargs)
            await tracker.rebuild()
            return tracker

        tracker = cls(conversation_id, storage, store=persisted.to_store(), **kwargs)
        await tracker.catch_up()
        return tracker

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def store(self) -> StateStore:
        return self._sync.store

    @property
    def cursor(self) -> int:
        return self._sync.store.cursor

    def context(self) -> dict[str, Any]:
        return {
            **self.store.snapshot(),
            "available": self.available,
            "status": self.status,
            "persistence_warning": self.persistence_warning,
        }

    def check_gate(self, name: str) -> bool:
        return self.gates.evaluate(name, self.store)

    def subscribe(self, kind: EventKind | str, handler: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        return self.bus.subscribe(kind, handler)

    # ------------------------------------------------------------------
    # Mutations (serialised)
    # ------------------------------------------------------------------

    async def ingest(self, message: Message) -> list[ChangeEvent]:
        """Fold one new message into the state.

        Returns the change events it produced. An index that was already
        folded is ignored; an index past the cursor means history was
        missed, so the whole state is rebuilt from storage instead.
        """
        async with self._lock:
            if message.index <= self.cursor:
                logger.debug(
                    "Ignoring message %d for %s, cursor is already %d",
                    message.index, self.conversation_id, self.cursor,
                )
                return []
            try:
                events = self._sync.apply(message, parse=self.auto_parse)
            except SequenceError as e:
                logger.warning("Sequence gap in %s (%s), rebuilding", self.conversation_id, e)
                await self._rebuild_locked()
                return []
            self._schedule_persist()
            return events

    async def catch_up(self) -> list[ChangeEvent]:
        """Apply every stored message past the cursor."""
        async with self._lock:
            try:
                history = self._storage.get_messages(self.conversation_id)
            except (OSError, ValueError) as e:
                self._mark_unavailable(e)
                return []
            if len(history) <= self.cursor:
                logger.warning(
                    "Stored state for %s is ahead of its history (%d > %d messages), rebuilding",
                    self.conversation_id, self.cursor + 1, len(history),
                )
                await self._rebuild_locked(history)
                return []
            events: list[ChangeEvent] = []
            try:
                for message in history[self.cursor + 1:]:
                    events.extend(self._sync.apply(message, parse=self.auto_parse))
            except SequenceError as e:
                logger.warning("Cannot catch up %s (%s), rebuilding", self.conversation_id, e)
                await self._rebuild_locked(history)
                return []
            if events:
                self._schedule_persist()
            return events

    async def rebuild(self) -> StateStore:
        """Replay the stored history from scratch. Gates keep their state."""
        async with self._lock:
            return await self._rebuild_locked()

    async def reset(self) -> StateStore:
        """Forget everything derived so far, gates included, and replay history."""
        async with self._lock:
            self.gates.reset()
            self._sync.replace(StateStore())
            logger.info("Reset tracker state for %s", self.conversation_id)
            return await self._rebuild_locked()

    async def _rebuild_locked(self, history: list[Message] | None = None) -> StateStore:
        try:
            if history is None:
                history = self._storage.get_messages(self.conversation_id)
            store = self._sync.rebuild(history)
        except (TrackerError, OSError, ValueError) as e:
            self._mark_unavailable(e)
            return self.store
        self.available = True
        self.status = READY_STATUS
        logger.info("Rebuilt %s from %d message(s)", self.conversation_id, len(history))
        self._schedule_persist()
        return store

    def _mark_unavailable(self, error: Exception) -> None:
        logger.error("Tracking disabled for %s: %s", self.conversation_id, error)
        self._sync.replace(StateStore())
        self.available = False
        self.status = UNAVAILABLE_STATUS
        self.bus.emit(EventKind.CONTEXT_UPDATED, self.store.snapshot(), cursor=self.cursor)

    # ------------------------------------------------------------------
    # Background persistence
    # ------------------------------------------------------------------

    def _schedule_persist(self) -> None:
        self._snapshot_seq += 1
        snapshot = PersistedState.capture(self.store, self.gates.gates)
        task = asyncio.create_task(self._persist(self._snapshot_seq, snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, seq: int, snapshot: PersistedState) -> None:
        async with self._write_lock:
            if seq < self._written_seq:
                return
            try:
                await asyncio.to_thread(self._storage.save_state, self.conversation_id, snapshot)
            except Exception as e:
                logger.warning("Could not persist state for %s: %s", self.conversation_id, e)
                self.persistence_warning = str(e)
                return
            self._written_seq = seq
            self.persistence_warning = None

    async def flush(self) -> None:
        """Wait until every scheduled state write has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))


class TrackerRegistry:
    """Lazily opened trackers, one per conversation id.

    ``on_open`` hooks run once per new tracker; the host uses them to attach
    consumer modules to the tracker's bus.
    """

    def __init__(
        self,
        storage: Storage,
        settings: Callable[[], dict[str, Any]] | None = None,
        matcher: Matcher | None = None,
    ) -> None:
        self.storage = storage
        self._settings = settings or (lambda: {})
        self._matcher = matcher
        self._trackers: dict[str, ConversationTracker] = {}
        self._lock = asyncio.Lock()
        self.on_open: list[Callable[[ConversationTracker], None]] = []

    async def get(self, conversation_id: str) -> ConversationTracker:
        """Return the tracker for a conversation, opening it on first use.

        Ids are slugified the way Storage does it, so "Foo" and "foo" share
        one tracker over the same files.
        """
        key = slugify(conversation_id)
        async with self._lock:
            tracker = self._trackers.get(key)
            if tracker is None:
                tracker = await ConversationTracker.open(
                    key,
                    self.storage,
                    matcher=self._matcher,
                    settings=self._settings(),
                )
                for hook in self.on_open:
                    hook(tracker)
                self._trackers[key] = tracker
            return tracker

    def loaded(self) -> list[str]:
        return list(self._trackers)

    async def drop(self, conversation_id: str) -> None:
        tracker = self._trackers.pop(slugify(conversation_id), None)
        if tracker is not None:
            await tracker.flush()

    async def close(self) -> None:
        for conversation_id in list(self._trackers):
            await self.drop(conversation_id)
