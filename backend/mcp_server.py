"""FastMCP server exposing tracker state as MCP tools.

Tools:
  - get_context(conversation_id)              — current context snapshot
  - list_entities(conversation_id, category)  — known places/factions/people/items
  - check_gate(conversation_id, gate)         — whether a gate is unlocked, and why

Trackers come from a TrackerRegistry replaced via set_registry() for tests,
or built over DATA_DIR when run as __main__.

Usage:
    uv run python -m backend.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from narrative_tracker.models import REGISTRY_CATEGORIES, Unlocked
from narrative_tracker.tracker import TrackerRegistry

mcp = FastMCP("narrative-tracker")

_registry: TrackerRegistry | None = None


def set_registry(registry: TrackerRegistry) -> None:
    """Replace the active tracker registry (used in tests)."""
    global _registry
    _registry = registry


def get_registry() -> TrackerRegistry:
    if _registry is None:
        raise RuntimeError("No tracker registry configured")
    return _registry


@mcp.tool()
async def get_context(conversation_id: str) -> dict:
    """Current location, faction, weather, time, combat state and known entities."""
    tracker = await get_registry().get(conversation_id)
    return tracker.context()


@mcp.tool()
async def list_entities(conversation_id: str, category: str) -> dict:
    """List known entities of one category: location, faction, person or item."""
    if category not in REGISTRY_CATEGORIES:
        raise ValueError(f"Unknown category: {category}")
    tracker = await get_registry().get(conversation_id)
    return {
        "category": category,
        "entities": [e.model_dump() for e in tracker.store.entities(category)],
    }


@mcp.tool()
async def check_gate(conversation_id: str, gate: str) -> dict:
    """Whether a gate is unlocked; unlocked gates report the cursor and reason."""
    tracker = await get_registry().get(conversation_id)
    tracker.check_gate(gate)
    state = tracker.gates.state(gate)
    return {"gate": gate, "open": isinstance(state, Unlocked), **state.model_dump()}


if __name__ == "__main__":
    from backend.app import create_registry, resolve_data_dir

    set_registry(create_registry(resolve_data_dir()))
    mcp.run()
