"""Tests for narrative_tracker.models."""

import pytest
from pydantic import TypeAdapter, ValidationError

from narrative_tracker.models import (
    STATE_VERSION,
    EntityRecord,
    Gate,
    Locked,
    Message,
    PersistedState,
    SequenceError,
    StateStore,
    TrackerError,
    Unlocked,
)


class TestMessage:
    def test_required_fields(self) -> None:
        m = Message(index=0, author="narrator", text="Dark.")
        assert m.index == 0
        assert m.author == "narrator"
        assert m.text == "Dark."

    def test_negative_index_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Message(index=-1, author="narrator", text="x")

    def test_unknown_author_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Message(index=0, author="bard", text="x")

    def test_frozen(self) -> None:
        m = Message(index=0, author="player", text="x")
        with pytest.raises(ValidationError):
            m.text = "y"


class TestStateStore:
    def test_fresh_store(self) -> None:
        store = StateStore()
        assert store.cursor == -1
        assert store.current.location is None
        assert store.current.terrain == "plains"
        assert store.current.in_combat is False
        assert set(store.registries) == {"location", "faction", "person", "item"}

    def test_tags_are_sorted_and_unique(self) -> None:
        store = StateStore()
        store.add_tags("rumors", "social")
        store.add_tags("rest", "social")
        assert store.tags == ["rest", "rumors", "social"]
        store.remove_tags("social", "missing")
        assert store.tags == ["rest", "rumors"]

    def test_entities_in_first_seen_order(self) -> None:
        store = StateStore()
        for i, name in enumerate(["Elena", "Aldric"]):
            store.registries["person"][f"person:{name.lower()}"] = EntityRecord(
                id=f"person:{name.lower()}", category="person",
                display_name=name, first_seen=i, last_seen=i,
            )
        assert [e.display_name for e in store.entities("person")] == ["Elena", "Aldric"]
        assert store.entities("unknown") == []

    def test_snapshot_shape(self) -> None:
        snap = StateStore().snapshot()
        for key in ("location", "terrain", "faction", "weather", "time_of_day", "in_combat",
                    "tags", "locations_visited", "factions_encountered", "people_known",
                    "items_noted", "mechanics", "cursor"):
            assert key in snap


class TestGates:
    def test_discriminated_union(self) -> None:
        adapter = TypeAdapter(Gate)
        assert isinstance(adapter.validate_python({"state": "locked"}), Locked)
        gate = adapter.validate_python({"state": "unlocked", "since_cursor": 4, "reason": "tavern"})
        assert isinstance(gate, Unlocked)
        assert gate.since_cursor == 4

    def test_unlocked_requires_cursor(self) -> None:
        with pytest.raises(ValidationError):
            Unlocked()


class TestPersistedState:
    def test_capture_is_detached(self) -> None:
        store = StateStore()
        store.add_tags("social")
        persisted = PersistedState.capture(store, {"g": Unlocked(since_cursor=0)})
        store.add_tags("combat")
        store.current.location = "forest"
        assert persisted.tags == ["social"]
        assert persisted.current.location is None
        assert persisted.version == STATE_VERSION

    def test_to_store_drops_gates(self) -> None:
        store = StateStore(cursor=3)
        persisted = PersistedState.capture(store, {"g": Unlocked(since_cursor=1, reason="x")})
        restored = persisted.to_store()
        assert restored == store

    def test_json_roundtrip_keeps_gate_variants(self) -> None:
        persisted = PersistedState.capture(
            StateStore(), {"a": Locked(), "b": Unlocked(since_cursor=2, reason="r")}
        )
        restored = PersistedState.model_validate_json(persisted.model_dump_json())
        assert isinstance(restored.gates["a"], Locked)
        assert restored.gates["b"] == Unlocked(since_cursor=2, reason="r")


def test_sequence_error_carries_indices() -> None:
    err = SequenceError(3, 5)
    assert isinstance(err, TrackerError)
    assert err.expected == 3
    assert err.got == 5
    assert "3" in str(err) and "5" in str(err)
