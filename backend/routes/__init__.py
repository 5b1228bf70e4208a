"""FastAPI API endpoints under /api.

Endpoint groups: health and settings, and conversations. Each
conversation's messages and derived tracker state are nested under
/api/conversations/{conversation_id}/.
"""

from fastapi import APIRouter

from .conversations import router as conversations_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(conversations_router)
