"""Tests for narrative_tracker.storage: message log and persisted tracker state."""

import json

import pytest

from narrative_tracker.models import PersistedState, PersistenceError, StateStore, Unlocked
from narrative_tracker.storage import Storage, slugify


def test_slugify_basic():
    assert slugify("The Cursed Tavern") == "the-cursed-tavern"


def test_slugify_apostrophe():
    assert slugify("Dragon's Hollow") == "dragons-hollow"


def test_slugify_empty():
    assert slugify("") == "untitled"


class TestMessages:
    def test_empty_conversation(self, storage: Storage) -> None:
        assert storage.get_messages("nope") == []
        assert storage.exists("nope") is False

    def test_append_assigns_indices(self, storage: Storage) -> None:
        first = storage.append_message("chat", "narrator", "You wake.")
        second = storage.append_message("chat", "player", "I stand up.")
        assert (first.index, second.index) == (0, 1)
        assert [m.text for m in storage.get_messages("chat")] == ["You wake.", "I stand up."]
        assert storage.exists("chat")

    def test_ids_are_slugified(self, storage: Storage) -> None:
        storage.append_message("My Chat!", "narrator", "x")
        assert storage.list_conversations() == ["my-chat"]
        assert len(storage.get_messages("my chat")) == 1

    def test_delete(self, storage: Storage) -> None:
        storage.append_message("chat", "narrator", "x")
        assert storage.delete_conversation("chat") is True
        assert storage.delete_conversation("chat") is False
        assert storage.list_conversations() == []


class TestState:
    def test_missing_state(self, storage: Storage) -> None:
        assert storage.load_state("chat") is None

    def test_roundtrip(self, storage: Storage) -> None:
        store = StateStore(cursor=2)
        store.add_tags("social")
        state = PersistedState.capture(store, {"socialContextVisited": Unlocked(since_cursor=1, reason="r")})
        storage.save_state("chat", state)
        loaded = storage.load_state("chat")
        assert loaded == state
        assert loaded.to_store() == store

    def test_unknown_version_ignored(self, storage: Storage) -> None:
        storage.save_state("chat", PersistedState())
        path = storage.base_path / "conversations" / "chat" / "state.json"
        data = json.loads(path.read_text())
        data["version"] = 0
        path.write_text(json.dumps(data))
        assert storage.load_state("chat") is None

    def test_corrupt_json_ignored(self, storage: Storage) -> None:
        storage.save_state("chat", PersistedState())
        (storage.base_path / "conversations" / "chat" / "state.json").write_text("{not json")
        assert storage.load_state("chat") is None

    def test_invalid_shape_ignored(self, storage: Storage) -> None:
        path = storage.base_path / "conversations" / "chat" / "state.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"version": 1, "cursor": "soon"}))
        assert storage.load_state("chat") is None

    def test_write_failure_raises_persistence_error(self, storage: Storage, monkeypatch) -> None:
        def refuse(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(Storage, "_write_json", refuse)
        with pytest.raises(PersistenceError, match="disk full"):
            storage.save_state("chat", PersistedState())

    def test_clear_state(self, storage: Storage) -> None:
        storage.save_state("chat", PersistedState())
        storage.clear_state("chat")
        storage.clear_state("chat")
        assert storage.load_state("chat") is None
