"""Core domain models.

Every stage of the tracker (extraction, identity resolution, synchronisation,
persistence) operates on these types. Pydantic is used for validation and
serialisation at every data boundary.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

STATE_VERSION = 1
EVENT_SCHEMA_VERSION = 2  # v2 added mechanicsChanged

Author = Literal["narrator", "player"]

Category = Literal[
    "location",
    "faction",
    "person",
    "item",
    "weather",
    "time",
    "combat",
    "mechanics",
]

REGISTRY_CATEGORIES: tuple[str, ...] = ("location", "faction", "person", "item")
SINGLETON_CATEGORIES: tuple[str, ...] = ("location", "faction", "weather", "time")


class Message(BaseModel):
    """One entry of a conversation's ordered history."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    author: Author
    text: str


class CandidateFact(BaseModel):
    """An unconfirmed, message-scoped extraction result."""

    category: Category
    name: str
    attributes: dict[str, str] = Field(default_factory=dict)
    raw_span: str = ""


class EntityRecord(BaseModel):
    """A deduplicated knowledge entry for a place, faction, person or item."""

    id: str
    category: Category
    display_name: str
    first_seen: int
    last_seen: int
    attributes: dict[str, str] = Field(default_factory=dict)


class CurrentContext(BaseModel):
    location: str | None = None
    location_type: str | None = None
    terrain: str = "plains"
    faction: str | None = None
    weather: str | None = None
    time_of_day: str | None = None
    in_combat: bool = False


class Mechanics(BaseModel):
    """Running game-mechanic totals read from bracketed tags."""

    resources: dict[str, int] = Field(default_factory=dict)  # HP, MP, SP, XP
    currencies: dict[str, int] = Field(default_factory=dict)
    quests: dict[str, str] = Field(default_factory=dict)  # name -> status
    statuses: list[str] = Field(default_factory=list)


class Activity(BaseModel):
    index: int
    location: str | None
    terrain: str
    faction: str | None
    in_combat: bool
    tags: list[str]


def _empty_registries() -> dict[str, dict[str, EntityRecord]]:
    return {category: {} for category in REGISTRY_CATEGORIES}


class StateStore(BaseModel):
    """Authoritative derived state for one conversation.

    Only the synchronizer mutates a store. ``tags`` has set semantics but is
    kept sorted so two stores built from the same history serialise to the
    same bytes.
    """

    current: CurrentContext = Field(default_factory=CurrentContext)
    registries: dict[str, dict[str, EntityRecord]] = Field(default_factory=_empty_registries)
    tags: list[str] = Field(default_factory=list)
    cursor: int = -1
    mechanics: Mechanics = Field(default_factory=Mechanics)
    activity: list[Activity] = Field(default_factory=list)

    def add_tags(self, *tags: str) -> None:
        self.tags = sorted(set(self.tags).union(tags))

    def remove_tags(self, *tags: str) -> None:
        self.tags = sorted(set(self.tags).difference(tags))

    def entities(self, category: str) -> list[EntityRecord]:
        """Entities of one category in first-seen order."""
        return list(self.registries.get(category, {}).values())

    def snapshot(self) -> dict:
        """Full current-state payload for ``contextUpdated`` events."""
        return {
            **self.current.model_dump(),
            "tags": list(self.tags),
            "locations_visited": [e.display_name for e in self.entities("location")],
            "factions_encountered": [e.display_name for e in self.entities("faction")],
            "people_known": [e.display_name for e in self.entities("person")],
            "items_noted": [e.display_name for e in self.entities("item")],
            "mechanics": self.mechanics.model_dump(),
            "cursor": self.cursor,
        }


class EventKind(str, Enum):
    """Closed set of change events published to consumers."""

    LOCATION_CHANGED = "locationChanged"
    TERRAIN_CHANGED = "terrainChanged"
    FACTION_ENCOUNTERED = "factionEncountered"
    PERSON_DISCOVERED = "personDiscovered"
    ITEM_NOTED = "itemNoted"
    COMBAT_STARTED = "combatStarted"
    COMBAT_ENDED = "combatEnded"
    WEATHER_CHANGED = "weatherChanged"
    TIME_CHANGED = "timeChanged"
    MECHANICS_CHANGED = "mechanicsChanged"
    CONTEXT_UPDATED = "contextUpdated"


class ChangeEvent(BaseModel):
    kind: EventKind
    payload: dict = Field(default_factory=dict)
    emitted_at_cursor: int


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------

class Locked(BaseModel):
    state: Literal["locked"] = "locked"


class Unlocked(BaseModel):
    """An open gate, remembering when and why it opened."""

    state: Literal["unlocked"] = "unlocked"
    since_cursor: int
    reason: str = ""


Gate = Annotated[Union[Locked, Unlocked], Field(discriminator="state")]


class PersistedState(BaseModel):
    """On-disk layout of one conversation's tracker state."""

    version: int = STATE_VERSION
    current: CurrentContext = Field(default_factory=CurrentContext)
    registries: dict[str, dict[str, EntityRecord]] = Field(default_factory=_empty_registries)
    tags: list[str] = Field(default_factory=list)
    cursor: int = -1
    gates: dict[str, Gate] = Field(default_factory=dict)
    mechanics: Mechanics = Field(default_factory=Mechanics)
    activity: list[Activity] = Field(default_factory=list)

    @classmethod
    def capture(cls, store: StateStore, gates: dict[str, Locked | Unlocked]) -> PersistedState:
        """Detached copy of a store plus gates, safe to serialise off-turn."""
        data = store.model_dump()
        data["gates"] = {name: gate.model_dump() for name, gate in gates.items()}
        return cls.model_validate(data)

    def to_store(self) -> StateStore:
        return StateStore.model_validate(self.model_dump(exclude={"version", "gates"}))


class TrackerError(Exception):
    """Base class for tracker failures."""


class SequenceError(TrackerError):
    """Raised when a message does not directly follow the store's cursor."""

    def __init__(self, expected: int, got: int) -> None:
        super().__init__(f"Expected message index {expected}, got {got}")
        self.expected = expected
        self.got = got


class PersistenceError(TrackerError):
    """Raised when tracker state cannot be written or read back."""
