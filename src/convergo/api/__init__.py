"""API routes."""

from fastapi import APIRouter, Depends

from .deps import require_api_key
from .health import router as health_router
from .sessions import router as sessions_router
from .messages import router as messages_router
from .chat import router as chat_router
from .feed import router as feed_router

api_router = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)])
api_router.include_router(sessions_router)
api_router.include_router(messages_router)
api_router.include_router(chat_router)
api_router.include_router(feed_router)

router = APIRouter()
router.include_router(health_router)
router.include_router(api_router)
