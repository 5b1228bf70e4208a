"""Tracker settings stored in data/config.json (auto-parse, limits, gates)."""

import json
from pathlib import Path
from typing import Any

from narrative_tracker.gates import DEFAULT_GATE_TAGS

_CONFIG_DEFAULTS: dict[str, Any] = {
    "auto_parse": True,
    "parse_player_messages": True,
    "activity_limit": 20,
    "rumor_cooldown": 5,
    "rumor_count": 3,
    "gates": DEFAULT_GATE_TAGS,
}

_SCALAR_KEYS = ("auto_parse", "parse_player_messages", "activity_limit", "rumor_cooldown", "rumor_count")


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    path = _config_path(data_dir)
    if path.is_file():
        stored = json.loads(path.read_text())
        for key in _SCALAR_KEYS:
            if key in stored:
                config[key] = stored[key]
        if isinstance(stored.get("gates"), dict):
            config["gates"] = stored["gates"]
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config.

    Gates merge by name; a gate mapped to an empty list is removed.
    """
    config = get_config(data_dir)
    for key in _SCALAR_KEYS:
        if key in fields:
            config[key] = fields[key]
    if "gates" in fields:
        for name, tags in fields["gates"].items():
            if tags:
                config["gates"][name] = list(tags)
            else:
                config["gates"].pop(name, None)
    path = _config_path(data_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config, indent=2))
    return config
