"""Message history and write endpoints."""

from fastapi import APIRouter, Depends, Query

from convergo.api.deps import clean_site, get_request_id, get_session_service
from convergo.api.schemas import ApiModel, Envelope, MessageResponse
from convergo.services import SessionService

router = APIRouter(prefix="/messages", tags=["messages"])

MAX_LIST_LIMIT = 200


class MessageCreate(ApiModel):
    site: str | None = None
    session_id: str | None = None
    role: str | None = None
    content: str | None = None


class MessageListResponse(Envelope):
    site: str
    session_id: str | None
    degraded: bool
    messages: list[MessageResponse]


class MessageCreateResponse(Envelope):
    site: str
    message: MessageResponse


@router.get("", response_model=MessageListResponse)
async def list_messages(
    site: str | None = None,
    session_id: str | None = Query(default=None, alias="sessionId"),
    limit: int = Query(default=MAX_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT),
    service: SessionService = Depends(get_session_service),
    request_id: str = Depends(get_request_id),
) -> MessageListResponse:
    """
    List messages in chronological order.

    Without sessionId the whole conversation is listed. If storage is
    unreachable the list is empty and ``degraded`` is true.
    """
    site = clean_site(site)
    session_id = (session_id or "").strip() or None
    result = await service.list_messages(site, session_id, limit, request_id)
    return MessageListResponse(
        request_id=request_id,
        site=site,
        session_id=session_id,
        degraded=result.degraded,
        messages=[MessageResponse.model_validate(m) for m in result.items],
    )


@router.post("", response_model=MessageCreateResponse)
async def create_message(
    data: MessageCreate,
    service: SessionService = Depends(get_session_service),
    request_id: str = Depends(get_request_id),
) -> MessageCreateResponse:
    """Record one turn, optionally inside a session."""
    site = clean_site(data.site)
    session_id = (data.session_id or "").strip() or None
    message = await service.write_message(site, session_id, data.role, data.content, request_id)
    return MessageCreateResponse(
        request_id=request_id,
        site=site,
        message=MessageResponse.model_validate(message),
    )
