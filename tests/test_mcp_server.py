"""MCP tool tests using the FastMCP in-process client."""

import json

import pytest
from mcp.shared.memory import create_connected_server_and_client_session

import backend.mcp_server as mcp_server
from narrative_tracker.tracker import TrackerRegistry


@pytest.fixture
async def registry(storage, add_messages):
    add_messages("chat", "You enter the tavern.", "You meet Captain Aldric by the fire.")
    registry = TrackerRegistry(storage)
    mcp_server.set_registry(registry)
    yield registry
    await registry.close()


async def _call(tool: str, args: dict) -> dict:
    async with create_connected_server_and_client_session(mcp_server.mcp) as client:
        result = await client.call_tool(tool, args)
    assert not result.isError, result.content
    return json.loads(result.content[0].text)


async def test_get_context(registry):
    context = await _call("get_context", {"conversation_id": "chat"})
    assert context["location"] == "tavern"
    assert context["people_known"] == ["Aldric"]
    assert context["cursor"] == 1


async def test_list_entities(registry):
    result = await _call("list_entities", {"conversation_id": "chat", "category": "person"})
    assert result["category"] == "person"
    assert [e["id"] for e in result["entities"]] == ["person:aldric"]


async def test_list_entities_unknown_category(registry):
    async with create_connected_server_and_client_session(mcp_server.mcp) as client:
        result = await client.call_tool("list_entities", {"conversation_id": "chat", "category": "dragon"})
    assert result.isError


async def test_check_gate(registry):
    result = await _call("check_gate", {"conversation_id": "chat", "gate": "socialContextVisited"})
    assert result["open"] is True
    assert result["since_cursor"] == 0
    assert result["reason"] == "rumors, social at tavern"

    locked = await _call("check_gate", {"conversation_id": "chat", "gate": "questBoardVisited"})
    assert locked == {"gate": "questBoardVisited", "open": False, "state": "locked"}
