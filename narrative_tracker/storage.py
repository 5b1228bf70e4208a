"""JSON file storage for conversations.

All state is stored in flat JSON files under a configurable base directory.
There is no database or ORM — reads and writes go through plain helper
methods that load and dump JSON.

Directory layout:

    {base}/
      conversations/
        {id}/
          messages.json       ← append-only Message log (the history)
          state.json          ← PersistedState of the tracker

Conversation ids are slugified before touching the filesystem.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import unicodedata
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from narrative_tracker.models import (
    STATE_VERSION,
    Author,
    Gate,
    Message,
    PersistedState,
    PersistenceError,
)

logger = logging.getLogger(__name__)

_GATES = TypeAdapter(dict[str, Gate])


def slugify(title: str) -> str:
    """Convert a title to a filesystem-safe slug.

    "The Cursed Tavern" → "the-cursed-tavern"
    """
    text = unicodedata.normalize("NFKD", title)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"['\"]", "", text)  # strip apostrophes/quotes before hyphenation
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")
    return text or "untitled"


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._conv_root = base_path / "conversations"
        self._conv_root.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _conv_dir(self, conversation_id: str) -> Path:
        return self._conv_root / slugify(conversation_id)

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def list_conversations(self) -> list[str]:
        return sorted(p.name for p in self._conv_root.iterdir() if p.is_dir())

    def exists(self, conversation_id: str) -> bool:
        return self._conv_dir(conversation_id).is_dir()

    def delete_conversation(self, conversation_id: str) -> bool:
        path = self._conv_dir(conversation_id)
        if not path.is_dir():
            return False
        shutil.rmtree(path)
        return True

    # ------------------------------------------------------------------
    # Messages (append-only)
    # ------------------------------------------------------------------

    def get_messages(self, conversation_id: str) -> list[Message]:
        path = self._conv_dir(conversation_id) / "messages.json"
        if not path.exists():
            return []
        return [Message.model_validate(m) for m in self._read_json(path)]

    def append_message(self, conversation_id: str, author: Author, text: str) -> Message:
        """Append a message at the next index and return it."""
        existing = self.get_messages(conversation_id)
        message = Message(index=len(existing), author=author, text=text)
        existing.append(message)
        self._write_json(
            self._conv_dir(conversation_id) / "messages.json",
            [m.model_dump() for m in existing],
        )
        return message

    # ------------------------------------------------------------------
    # Tracker state
    # ------------------------------------------------------------------

    def save_state(self, conversation_id: str, state: PersistedState) -> None:
        try:
            self._write_json(
                self._conv_dir(conversation_id) / "state.json",
                state.model_dump(mode="json"),
            )
        except OSError as e:
            raise PersistenceError(f"Cannot write state for {conversation_id}: {e}") from e

    def load_state(self, conversation_id: str) -> PersistedState | None:
        """Read stored tracker state.

        Returns None when there is nothing usable: no file, unreadable JSON,
        or a version other than STATE_VERSION. Callers rebuild in that case
        rather than migrating field by field.
        """
        path = self._conv_dir(conversation_id) / "state.json"
        if not path.exists():
            return None
        try:
            data = self._read_json(path)
        except json.JSONDecodeError as e:
            logger.warning("State file for %s is not valid JSON: %s", conversation_id, e)
            return None
        if not isinstance(data, dict) or data.get("version") != STATE_VERSION:
            logger.info(
                "State for %s has version %r, expected %d — rebuild required",
                conversation_id, data.get("version") if isinstance(data, dict) else None, STATE_VERSION,
            )
            return None
        try:
            return PersistedState.model_validate(data)
        except ValidationError as e:
            logger.warning("State file for %s failed validation: %s", conversation_id, e)
            return None

    def load_gates(self, conversation_id: str) -> dict[str, Gate]:
        """Read only the gate states from state.json, whatever its version.

        Gates outlive a rebuild, so they are recovered even when the rest of
        the file is unusable. Returns an empty mapping if they cannot be read.
        """
        path = self._conv_dir(conversation_id) / "state.json"
        if not path.exists():
            return {}
        try:
            data = self._read_json(path)
            if not isinstance(data, dict):
                return {}
            return _GATES.validate_python(data.get("gates") or {})
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Gates for %s could not be recovered: %s", conversation_id, e)
            return {}

    def clear_state(self, conversation_id: str) -> None:
        path = self._conv_dir(conversation_id) / "state.json"
        if path.exists():
            path.unlink()
