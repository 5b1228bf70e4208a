"""Tavern rumors, generated from what the tracker knows about the world.

Generation is gated on ``socialContextVisited``: until the party has been
somewhere people gossip, the mill holds no rumors at all and clears any it
is handed. Once open, a new batch is produced at most every ``cooldown``
messages. Randomness comes from a Random seeded with the mill's seed and
the cursor, so the same history yields the same rumors.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable

from pydantic import BaseModel

from narrative_tracker.bus import EventBus
from narrative_tracker.gates import GateEvaluator
from narrative_tracker.models import ChangeEvent, EventKind, StateStore

logger = logging.getLogger(__name__)

SOCIAL_GATE = "socialContextVisited"
MAX_RUMORS = 50

# source -> chance that a place or gossip rumor from it is true
SOURCES: dict[str, float] = {
    "traveling_merchant": 0.6,
    "town_guard": 0.7,
    "tavern_keeper": 0.5,
    "noble_servant": 0.75,
    "street_urchin": 0.4,
    "mysterious_stranger": 0.5,
}

FACTION_RUMORS = [
    "{faction} grows stronger by the day.",
    "{faction} is struggling, their coffers are nearly empty.",
    "Trade routes to {faction} are blocked, prices will rise.",
    "The ruler of {faction} has not been seen in weeks.",
]

RIVALRY_RUMORS = [
    "Tensions are rising between {faction1} and {faction2}.",
    "{faction1} and {faction2} are forming a secret alliance.",
    "Border skirmishes between {faction1} and {faction2} grow frequent.",
]

PLACE_RUMORS = [
    "A terrible beast stalks the roads near the {location}.",
    "Ancient treasure was found near the {location}!",
    "Strange lights were seen over the {terrain} last night.",
]

QUEST_RUMORS = [
    "The mayor is looking for someone to clear the {terrain} of monsters.",
    "The bounty on the bandit leader just doubled.",
    "A merchant needs an escort through the {terrain}.",
    "Someone has been kidnapped, and the family is offering a reward.",
]

GENERIC_RUMORS = [
    "The blacksmith's daughter is secretly seeing a bard.",
    "A caravan went missing on the north road.",
    "The herbalist is selling love potions again.",
    "Someone saw ghost lights in the old cemetery.",
]


class Rumor(BaseModel):
    id: str
    text: str
    category: str
    source: str
    is_true: bool
    cursor: int


class RumorMill:
    def __init__(
        self,
        bus: EventBus,
        gates: GateEvaluator,
        store: Callable[[], StateStore],
        *,
        cooldown: int = 5,
        count: int = 3,
        seed: int | str = 0,
        gate: str = SOCIAL_GATE,
    ) -> None:
        self._gates = gates
        self._store = store
        self.cooldown = cooldown
        self.count = count
        self.seed = seed
        self.gate = gate
        self.rumors: list[Rumor] = []
        self.heard: list[str] = []
        self.last_generated: int | None = None
        self._unsubscribe = [
            bus.subscribe(EventKind.CONTEXT_UPDATED, self._on_context),
            bus.subscribe(EventKind.LOCATION_CHANGED, self._on_location),
        ]

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    @property
    def unlocked(self) -> bool:
        return self._gates.is_open(self.gate)

    # ── Event handlers ──

    def _on_context(self, event: ChangeEvent) -> None:
        if not self.unlocked:
            self.clear()
            return
        self.refresh(event.emitted_at_cursor)

    def _on_location(self, event: ChangeEvent) -> None:
        # Arriving somewhere social skips the cooldown once.
        tags = event.payload.get("tags", [])
        if self.unlocked and ("social" in tags or "rumors" in tags):
            self.last_generated = None

    # ── Generation ──

    def clear(self) -> None:
        if self.rumors or self.heard:
            logger.debug("Gate %s locked, dropping %d rumor(s)", self.gate, len(self.rumors))
        self.rumors = []
        self.heard = []
        self.last_generated = None

    def refresh(self, cursor: int) -> list[Rumor]:
        """Add a batch of rumors if the cooldown has passed; return the new ones."""
        if not self.unlocked:
            return []
        if self.last_generated is not None and cursor - self.last_generated < self.cooldown:
            return []
        fresh = self.generate(cursor, self.count)
        self.rumors = (fresh + self.rumors)[:MAX_RUMORS]
        self.last_generated = cursor
        return fresh

    def generate(self, cursor: int, count: int) -> list[Rumor]:
        """Produce rumors from the current store. Empty while the gate is locked."""
        if not self.unlocked:
            return []
        store = self._store()
        rng = random.Random(f"{self.seed}:{cursor}")
        factions = [e.attributes.get("label") or e.display_name for e in store.entities("faction")]
        locations = [e.display_name for e in store.entities("location")]
        terrain = store.current.terrain

        rumors = []
        for i in range(count):
            source = rng.choice(list(SOURCES))
            reliable = rng.random() < SOURCES[source]
            roll = rng.random()
            if roll < 0.4 and factions:
                category, is_true = "faction", True
                if len(factions) > 1 and rng.random() < 0.5:
                    first, second = rng.sample(factions, 2)
                    text = rng.choice(RIVALRY_RUMORS).format(faction1=first, faction2=second)
                else:
                    text = rng.choice(FACTION_RUMORS).format(faction=rng.choice(factions))
            elif roll < 0.7 and locations:
                category, is_true = "place", reliable
                text = rng.choice(PLACE_RUMORS).format(location=rng.choice(locations), terrain=terrain)
            elif roll < 0.85:
                category, is_true = "quest", True
                text = rng.choice(QUEST_RUMORS).format(terrain=terrain)
            else:
                category, is_true = "gossip", reliable
                text = rng.choice(GENERIC_RUMORS)
            rumors.append(Rumor(
                id=f"rum_{cursor}_{i}",
                text=text,
                category=category,
                source=source,
                is_true=is_true,
                cursor=cursor,
            ))
        return rumors

    def hear(self) -> Rumor | None:
        """Mark the newest unheard rumor as heard and return it, or None."""
        for rumor in self.rumors:
            if rumor.id not in self.heard:
                self.heard.append(rumor.id)
                return rumor
        return None
