"""FastAPI dependencies wiring settings, storage and external clients."""

import secrets
from uuid import uuid4

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from convergo.chat import CompanionChat
from convergo.config import Settings, get_settings
from convergo.db import get_session
from convergo.drafts import DraftComposer
from convergo.errors import ConvergoError, ErrorKind
from convergo.generation import GenerationClient
from convergo.guardrails import GuardrailPolicy
from convergo.pipeline import DraftPipeline
from convergo.publisher import WordPressPublisher
from convergo.services import SessionService
from convergo.store import ConversationStore
from convergo.stream import EventStream, event_stream

DEFAULT_SITE = "default"


def clean_site(site: str | None) -> str:
    return (site or "").strip() or DEFAULT_SITE


def get_request_id(request: Request) -> str:
    """The id assigned by the request-id middleware."""
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = request.state.request_id = uuid4().hex
    return request_id


async def require_api_key(
    x_convergo_key: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Shared-secret check, enabled when CONVERGO_API_KEY is set."""
    if not settings.api_key:
        return
    if not x_convergo_key or not secrets.compare_digest(x_convergo_key, settings.api_key):
        raise ConvergoError(ErrorKind.UNAUTHORIZED, "Missing or invalid API key.")


def get_event_stream() -> EventStream:
    return event_stream


def get_generation_client(settings: Settings = Depends(get_settings)) -> GenerationClient:
    return GenerationClient.from_settings(settings)


def get_publisher(settings: Settings = Depends(get_settings)) -> WordPressPublisher:
    return WordPressPublisher.from_settings(settings)


def get_store(db: AsyncSession = Depends(get_session)) -> ConversationStore:
    return ConversationStore(db)


def get_session_service(
    store: ConversationStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    events: EventStream = Depends(get_event_stream),
) -> SessionService:
    policy = GuardrailPolicy(
        max_message_chars=settings.max_message_chars,
        max_session_messages=settings.max_session_messages,
    )
    return SessionService(store, policy, events)


def get_pipeline(
    store: ConversationStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    generation: GenerationClient = Depends(get_generation_client),
    publisher: WordPressPublisher = Depends(get_publisher),
    events: EventStream = Depends(get_event_stream),
) -> DraftPipeline:
    return DraftPipeline(
        store,
        DraftComposer(generation),
        publisher,
        events,
        max_messages=settings.draft_max_messages,
        max_chars=settings.draft_max_chars,
    )


def get_companion(
    sessions: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
    generation: GenerationClient = Depends(get_generation_client),
) -> CompanionChat:
    return CompanionChat(
        sessions,
        generation,
        settings.companion_prompt,
        max_messages=settings.draft_max_messages,
        max_chars=settings.draft_max_chars,
    )
