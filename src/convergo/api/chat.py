"""Companion chat endpoint."""

from fastapi import APIRouter, Depends

from convergo.api.deps import clean_site, get_companion, get_request_id
from convergo.api.schemas import ApiModel, Envelope, MessageResponse
from convergo.chat import CompanionChat

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatRequest(ApiModel):
    site: str | None = None
    session_id: str | None = None
    message: str | None = None


class ChatResponse(Envelope):
    site: str
    reply: str
    user_message: MessageResponse
    assistant_message: MessageResponse


@router.post("", response_model=ChatResponse)
async def chat(
    data: ChatRequest,
    companion: CompanionChat = Depends(get_companion),
    request_id: str = Depends(get_request_id),
) -> ChatResponse:
    """Send a message to the companion and get its reply."""
    site = clean_site(data.site)
    session_id = (data.session_id or "").strip() or None
    exchange = await companion.exchange(site, session_id, data.message, request_id)
    return ChatResponse(
        request_id=request_id,
        site=site,
        reply=exchange.reply,
        user_message=MessageResponse.model_validate(exchange.user_message),
        assistant_message=MessageResponse.model_validate(exchange.assistant_message),
    )
