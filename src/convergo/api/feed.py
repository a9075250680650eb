"""Recent-activity feed across sites."""

from datetime import datetime

from fastapi import APIRouter, Depends

from convergo.api.deps import get_request_id, get_session_service
from convergo.api.schemas import ApiModel, Envelope
from convergo.services import SessionService

router = APIRouter(prefix="/feed", tags=["feed"])

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


class FeedItem(ApiModel):
    id: str
    site: str
    role: str
    content: str
    created_at: datetime


class FeedResponse(Envelope):
    site: str
    limit: int
    degraded: bool
    items: list[FeedItem]


def clamp_limit(raw: str | None) -> int:
    """Parse ?limit=, clamped to 1..200, 50 when missing or not a number."""
    if raw is None:
        return DEFAULT_LIMIT
    try:
        value = int(float(raw))
    except (ValueError, OverflowError):
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, value))


@router.get("", response_model=FeedResponse)
async def feed(
    site: str | None = None,
    limit: str | None = None,
    service: SessionService = Depends(get_session_service),
    request_id: str = Depends(get_request_id),
) -> FeedResponse:
    """Newest messages first, optionally for a single site."""
    site = (site or "").strip() or None
    count = clamp_limit(limit)
    result = await service.feed(site, count, request_id)
    return FeedResponse(
        request_id=request_id,
        site=site or "ALL",
        limit=count,
        degraded=result.degraded,
        items=[
            FeedItem(
                id=message.id,
                site=message_site,
                role=message.role,
                content=message.content,
                created_at=message.created_at,
            )
            for message, message_site in result.items
        ],
    )
