"""Synchronizer — folds messages into a StateStore and reports what changed.

There is exactly one mutation path: apply_one(). rebuild() is a fold of
apply_one() over the ordered history starting from an empty store, so the
incremental and replay paths cannot drift apart.

Application order inside one message:
  location → terrain/tags → faction → weather → time → combat → mechanics →
  people → items → activity log → cursor

Change events are produced in that same order, one per category that
actually changed (one per novel person/item), and always end with a single
contextUpdated carrying the full snapshot.

Combat hysteresis: >= 2 signals enters combat, 0 leaves it, exactly 1 keeps
whatever state the store was already in.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from narrative_tracker.bus import EventBus
from narrative_tracker.extraction import Matcher, extract
from narrative_tracker.identity import entity_id, resolve
from narrative_tracker.models import (
    Activity,
    CandidateFact,
    ChangeEvent,
    EntityRecord,
    EventKind,
    Mechanics,
    Message,
    SequenceError,
    StateStore,
)

logger = logging.getLogger(__name__)

ACTIVITY_LIMIT = 20
COMBAT_START_SIGNALS = 2


def apply_one(
    store: StateStore,
    message: Message,
    matcher: Matcher | None = None,
    *,
    parse: bool = True,
    parse_player: bool = True,
    activity_limit: int = ACTIVITY_LIMIT,
) -> list[ChangeEvent]:
    """Fold one message into the store and return the change events it caused.

    Raises SequenceError unless message.index == store.cursor + 1. A message
    nothing matches is not an error: only the cursor and activity log move.
    With parse=False the message is folded without extraction at all.
    """
    expected = store.cursor + 1
    if message.index != expected:
        raise SequenceError(expected, message.index)

    if not parse or (message.author == "player" and not parse_player):
        candidates: list[CandidateFact] = []
    else:
        candidates = extract(message, matcher)

    idx = message.index
    current = store.current
    events: list[ChangeEvent] = []

    def emit(kind: EventKind, payload: dict) -> None:
        events.append(ChangeEvent(kind=kind, payload=payload, emitted_at_cursor=idx))

    by_category: dict[str, list[CandidateFact]] = {}
    for fact in candidates:
        by_category.setdefault(fact.category, []).append(fact)

    resolution = resolve(candidates, store.registries)
    for record in resolution.known:
        record.last_seen = idx
    novel = {entity_id(f.category, f.name): f for f in resolution.novel}

    # ── Location, terrain, tags ──
    location = _single(by_category, "location")
    if location is not None:
        _register(store, location, idx, novel, {
            "type": location.attributes.get("type", ""),
            "terrain": location.attributes.get("terrain", ""),
            "tags": location.attributes.get("tags", ""),
        })
        if location.name != current.location:
            if current.location is not None:
                store.remove_tags(*_location_tags(store, current.location))
            current.location = location.name
            current.location_type = location.attributes.get("type") or None
            store.add_tags(*_split_tags(location.attributes.get("tags", "")))
            emit(EventKind.LOCATION_CHANGED, {
                "location": current.location,
                "type": current.location_type,
                "tags": list(store.tags),
            })
            terrain = location.attributes.get("terrain")
            if terrain and terrain != current.terrain:
                current.terrain = terrain
                emit(EventKind.TERRAIN_CHANGED, {"terrain": terrain})

    # ── Faction ──
    faction = _single(by_category, "faction")
    if faction is not None:
        created = _register(store, faction, idx, novel, {"label": faction.attributes.get("label", "")})
        if created or faction.name != current.faction:
            current.faction = faction.name
            emit(EventKind.FACTION_ENCOUNTERED, {
                "faction": faction.name,
                "label": faction.attributes.get("label", faction.name),
                "all_factions": [e.display_name for e in store.entities("faction")],
            })

    # ── Weather, time of day ──
    weather = _single(by_category, "weather")
    if weather is not None and weather.name != current.weather:
        current.weather = weather.name
        emit(EventKind.WEATHER_CHANGED, {"weather": weather.name})

    time_of_day = _single(by_category, "time")
    if time_of_day is not None and time_of_day.name != current.time_of_day:
        current.time_of_day = time_of_day.name
        emit(EventKind.TIME_CHANGED, {"time_of_day": time_of_day.name})

    # ── Combat ──
    combat = _single(by_category, "combat")
    signals = int(combat.attributes.get("signals", "0")) if combat is not None else 0
    if signals >= COMBAT_START_SIGNALS and not current.in_combat:
        current.in_combat = True
        store.add_tags("combat")
        emit(EventKind.COMBAT_STARTED, {})
    elif signals == 0 and current.in_combat:
        current.in_combat = False
        store.remove_tags("combat")
        emit(EventKind.COMBAT_ENDED, {})

    # ── Mechanics ──
    deltas = []
    for fact in by_category.get("mechanics", []):
        delta = _apply_mechanics(store.mechanics, fact)
        if delta is not None:
            deltas.append(delta)
    if deltas:
        emit(EventKind.MECHANICS_CHANGED, {
            "deltas": deltas,
            "mechanics": store.mechanics.model_dump(),
        })

    # ── People, items ──
    for fact in by_category.get("person", []):
        record = _register(store, fact, idx, novel, {
            "location": current.location or "",
            "faction": current.faction or "",
        })
        if record is not None:
            emit(EventKind.PERSON_DISCOVERED, {"entity": record.model_dump()})

    for fact in by_category.get("item", []):
        record = _register(store, fact, idx, novel, {
            **fact.attributes,
            "location": current.location or "",
        })
        if record is not None:
            emit(EventKind.ITEM_NOTED, {"entity": record.model_dump()})

    # ── Activity log, cursor ──
    store.activity.insert(0, Activity(
        index=idx,
        location=current.location,
        terrain=current.terrain,
        faction=current.faction,
        in_combat=current.in_combat,
        tags=list(store.tags),
    ))
    del store.activity[activity_limit:]

    store.cursor = idx
    emit(EventKind.CONTEXT_UPDATED, store.snapshot())

    logger.debug(
        "applied message %d: %d candidate(s), %d event(s)", idx, len(candidates), len(events)
    )
    return events


def rebuild(
    history: Iterable[Message],
    matcher: Matcher | None = None,
    *,
    on_step: Callable[[StateStore], None] | None = None,
    parse_player: bool = True,
    activity_limit: int = ACTIVITY_LIMIT,
) -> StateStore:
    """Replay a full history into a fresh store.

    Equivalent to calling apply_one for every message from an empty store.
    A gap or duplicate index in the history raises SequenceError.
    """
    store = StateStore()
    for message in sorted(history, key=lambda m: m.index):
        apply_one(store, message, matcher, parse_player=parse_player, activity_limit=activity_limit)
        if on_step is not None:
            on_step(store)
    return store


class Synchronizer:
    """Owns one conversation's store and publishes its change events.

    ``observer`` is called with the store after every folded message, before
    any event is published, so gate state is current when consumers react.
    """

    def __init__(
        self,
        bus: EventBus,
        matcher: Matcher | None = None,
        store: StateStore | None = None,
        *,
        parse_player: bool = True,
        activity_limit: int = ACTIVITY_LIMIT,
        observer: Callable[[StateStore], None] | None = None,
    ) -> None:
        self._bus = bus
        self._matcher = matcher
        self._store = store or StateStore()
        self.parse_player = parse_player
        self.activity_limit = activity_limit
        self.observer = observer

    @property
    def store(self) -> StateStore:
        return self._store

    def replace(self, store: StateStore) -> None:
        self._store = store

    def apply(self, message: Message, *, parse: bool = True) -> list[ChangeEvent]:
        events = apply_one(
            self._store, message, self._matcher, parse=parse,
            parse_player=self.parse_player, activity_limit=self.activity_limit,
        )
        if self.observer is not None:
            self.observer(self._store)
        self._bus.publish_all(events)
        return events

    def rebuild(self, history: Iterable[Message]) -> StateStore:
        """Replay history into a new store, then swap it in.

        Per-message events are not published; consumers get one
        contextUpdated for the rebuilt state. On failure the previous store
        stays in place.
        """
        store = rebuild(
            history, self._matcher, on_step=self.observer,
            parse_player=self.parse_player, activity_limit=self.activity_limit,
        )
        self._store = store
        self._bus.emit(EventKind.CONTEXT_UPDATED, store.snapshot(), cursor=store.cursor)
        return store


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _single(by_category: dict[str, list[CandidateFact]], category: str) -> CandidateFact | None:
    facts = by_category.get(category)
    return facts[-1] if facts else None


def _split_tags(raw: str) -> list[str]:
    return [t for t in raw.split(",") if t]


def _location_tags(store: StateStore, location: str) -> list[str]:
    record = store.registries["location"].get(entity_id("location", location))
    return _split_tags(record.attributes.get("tags", "")) if record else []


def _register(
    store: StateStore,
    fact: CandidateFact,
    idx: int,
    novel: dict[str, CandidateFact],
    attributes: dict[str, str],
) -> EntityRecord | None:
    """Insert the entity if it is novel; return the new record, else None."""
    eid = entity_id(fact.category, fact.name)
    if eid not in novel:
        return None
    del novel[eid]
    record = EntityRecord(
        id=eid,
        category=fact.category,
        display_name=fact.name,
        first_seen=idx,
        last_seen=idx,
        attributes=attributes,
    )
    store.registries.setdefault(fact.category, {})[eid] = record
    return record


def _find_key(mapping: dict, name: str) -> str:
    """Existing key matching name case-insensitively, else name itself."""
    lowered = name.lower()
    for key in mapping:
        if key.lower() == lowered:
            return key
    return name


def _apply_mechanics(mechanics: Mechanics, fact: CandidateFact) -> dict | None:
    kind = fact.attributes.get("kind")

    if kind in ("resource", "currency"):
        pool = mechanics.resources if kind == "resource" else mechanics.currencies
        delta = int(fact.attributes.get("delta", "0"))
        value = pool.get(fact.name, 0) + delta
        if fact.name != "XP":
            value = max(0, value)
        pool[fact.name] = value
        return {"kind": kind, "name": fact.name, "delta": delta, "value": value}

    if kind == "quest":
        key = _find_key(mechanics.quests, fact.name)
        status = fact.attributes.get("status", "Active")
        if mechanics.quests.get(key) == status:
            return None
        mechanics.quests[key] = status
        return {"kind": kind, "name": key, "status": status}

    if kind == "status":
        lowered = [s.lower() for s in mechanics.statuses]
        present = fact.name.lower() in lowered
        if fact.attributes.get("op") == "-":
            if not present:
                return None
            del mechanics.statuses[lowered.index(fact.name.lower())]
            return {"kind": kind, "name": fact.name, "op": "-"}
        if present:
            return None
        mechanics.statuses.append(fact.name)
        return {"kind": kind, "name": fact.name, "op": "+"}

    logger.warning("Ignoring mechanics fact of unknown kind %r", kind)
    return None
