from pathlib import Path

import pytest

from narrative_tracker.storage import Storage


@pytest.fixture
def storage(tmp_path: Path) -> Storage:
    """Fresh file storage rooted in the test's tmp dir."""
    return Storage(tmp_path / "data")


@pytest.fixture
def add_messages(storage: Storage):
    """Append narrator messages to a conversation; returns the stored Messages."""

    def add(conversation_id: str, *texts: str):
        return [storage.append_message(conversation_id, "narrator", text) for text in texts]

    return add
