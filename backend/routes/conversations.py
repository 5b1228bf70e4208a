"""Conversation messages and tracker state endpoints."""

from fastapi import APIRouter, HTTPException, Request

from narrative_tracker.context import TemplateError, render_context_block
from narrative_tracker.models import REGISTRY_CATEGORIES
from narrative_tracker.tracker import ConversationTracker, TrackerRegistry

from .models import PostMessage

router = APIRouter()


def _registry(request: Request) -> TrackerRegistry:
    return request.app.state.registry


async def _tracker(request: Request, conversation_id: str) -> ConversationTracker:
    registry = _registry(request)
    if not registry.storage.exists(conversation_id):
        raise HTTPException(404, "Conversation not found")
    return await registry.get(conversation_id)


@router.get("/conversations")
async def list_conversations(request: Request):
    """List conversation ids that have stored messages."""
    return _registry(request).storage.list_conversations()


@router.get("/conversations/{conversation_id}/messages")
async def get_messages(conversation_id: str, request: Request):
    """Get the message history of a conversation."""
    storage = _registry(request).storage
    if not storage.exists(conversation_id):
        raise HTTPException(404, "Conversation not found")
    return storage.get_messages(conversation_id)


@router.post("/conversations/{conversation_id}/messages")
async def post_message(conversation_id: str, body: PostMessage, request: Request):
    """Append a message and fold it into the tracker state.

    Creates the conversation on its first message.
    """
    if not body.text.strip():
        raise HTTPException(400, "Message text is empty")
    registry = _registry(request)
    tracker = await registry.get(conversation_id)
    message = registry.storage.append_message(conversation_id, body.author, body.text)
    events = await tracker.ingest(message)
    return {
        "message": message,
        "events": events,
        "available": tracker.available,
    }


@router.get("/conversations/{conversation_id}/state")
async def get_state(conversation_id: str, request: Request):
    """Full derived state: current context, registries, tags, mechanics, activity."""
    tracker = await _tracker(request, conversation_id)
    return {
        **tracker.store.model_dump(),
        "gates": tracker.gates.gates,
        "available": tracker.available,
        "status": tracker.status,
        "persistence_warning": tracker.persistence_warning,
    }


@router.get("/conversations/{conversation_id}/context")
async def get_context(conversation_id: str, request: Request):
    """Current context snapshot, the same payload contextUpdated carries."""
    tracker = await _tracker(request, conversation_id)
    return tracker.context()


@router.get("/conversations/{conversation_id}/context-block")
async def get_context_block(conversation_id: str, request: Request):
    """Rendered [JOURNEY CONTEXT] block for a narrator prompt."""
    tracker = await _tracker(request, conversation_id)
    try:
        block = render_context_block(tracker.store)
    except TemplateError as e:
        raise HTTPException(500, str(e))
    return {"block": block}


@router.get("/conversations/{conversation_id}/entities/{category}")
async def list_entities(conversation_id: str, category: str, request: Request):
    """Known places, factions, people or items, in first-seen order."""
    if category not in REGISTRY_CATEGORIES:
        raise HTTPException(404, f"Unknown category: {category}")
    tracker = await _tracker(request, conversation_id)
    return tracker.store.entities(category)


@router.get("/conversations/{conversation_id}/gates")
async def get_gates(conversation_id: str, request: Request):
    """Gate states with the cursor and reason of each unlock."""
    tracker = await _tracker(request, conversation_id)
    return tracker.gates.gates


@router.get("/conversations/{conversation_id}/rumors")
async def get_rumors(conversation_id: str, request: Request):
    """Rumors heard around town. Empty until a social place was visited."""
    tracker = await _tracker(request, conversation_id)
    mill = tracker.extensions.get("rumors")
    if mill is None:
        return {"unlocked": False, "rumors": []}
    return {"unlocked": mill.unlocked, "rumors": mill.rumors}


@router.post("/conversations/{conversation_id}/rebuild")
async def rebuild(conversation_id: str, request: Request):
    """Replay the whole history into fresh state. Gates stay latched."""
    tracker = await _tracker(request, conversation_id)
    await tracker.rebuild()
    if not tracker.available:
        raise HTTPException(409, tracker.status)
    return tracker.context()


@router.post("/conversations/{conversation_id}/reset")
async def reset(conversation_id: str, request: Request):
    """Reset derived state and gates, then replay the history."""
    tracker = await _tracker(request, conversation_id)
    await tracker.reset()
    if not tracker.available:
        raise HTTPException(409, tracker.status)
    return tracker.context()
