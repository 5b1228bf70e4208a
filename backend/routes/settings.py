"""Health check and settings endpoints."""

from fastapi import APIRouter, Request

from backend import config
from narrative_tracker.models import EVENT_SCHEMA_VERSION

from .models import UpdateSettings

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok", "event_schema_version": EVENT_SCHEMA_VERSION}


@router.get("/settings")
async def get_settings(request: Request):
    """Get tracker settings (parsing toggles, limits, gate triggers)."""
    return config.get_config(request.app.state.data_dir)


@router.patch("/settings")
async def update_settings(body: UpdateSettings, request: Request):
    """Update tracker settings (partial merge).

    Loaded trackers are flushed and dropped so the next request reopens them
    with the new settings.
    """
    updated = config.update_config(request.app.state.data_dir, body.model_dump(exclude_none=True))
    await request.app.state.registry.close()
    return updated
