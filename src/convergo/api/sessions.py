"""Session start/end endpoints."""

import json
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sse_starlette.sse import EventSourceResponse

from convergo.api.deps import (
    clean_site,
    get_event_stream,
    get_pipeline,
    get_request_id,
    get_session_service,
)
from convergo.api.schemas import ApiModel, Envelope
from convergo.pipeline import DraftPipeline
from convergo.services import SessionService
from convergo.stream import EventStream

router = APIRouter(prefix="/session", tags=["sessions"])


# --- Schemas ---


class SessionStart(ApiModel):
    site: str | None = None


class SessionEnd(ApiModel):
    site: str | None = None
    session_id: str


class SessionStartResponse(Envelope):
    site: str
    conversation_id: str
    session_id: str
    started_at: datetime


class SessionEndResponse(Envelope):
    site: str
    session_id: str
    started_at: datetime
    ended_at: datetime
    message_count: int
    published_id: int
    published_link: str | None
    draft_degraded: bool


class SessionStatusResponse(Envelope):
    site: str
    session_id: str
    started_at: datetime
    ended_at: datetime | None
    active: bool
    message_count: int


# --- Routes ---


async def sse_frames(events: EventStream, session_id: str, last_id: str):
    """Turn stream events into SSE frames."""
    async for event_id, event_type, data in events.subscribe(session_id, last_id=last_id):
        yield {
            "event": event_type,
            "id": event_id,
            "data": json.dumps(data),
        }


@router.post("/start", response_model=SessionStartResponse)
async def start_session(
    data: SessionStart,
    service: SessionService = Depends(get_session_service),
    request_id: str = Depends(get_request_id),
) -> SessionStartResponse:
    """Start a new session under the site's conversation."""
    site = clean_site(data.site)
    conversation, session = await service.start_session(site, request_id)
    return SessionStartResponse(
        request_id=request_id,
        site=site,
        conversation_id=conversation.id,
        session_id=session.id,
        started_at=session.started_at,
    )


@router.post("/end", response_model=SessionEndResponse)
async def end_session(
    data: SessionEnd,
    pipeline: DraftPipeline = Depends(get_pipeline),
    request_id: str = Depends(get_request_id),
) -> SessionEndResponse:
    """End a session and publish its transcript as a draft post."""
    site = clean_site(data.site)
    result = await pipeline.end_session(site, data.session_id.strip(), request_id)
    return SessionEndResponse(
        request_id=request_id,
        site=site,
        session_id=result.session_id,
        started_at=result.started_at,
        ended_at=result.ended_at,
        message_count=result.message_count,
        published_id=result.published_id,
        published_link=result.published_link,
        draft_degraded=result.draft_degraded,
    )


@router.get("/{session_id}", response_model=SessionStatusResponse)
async def get_session_status(
    session_id: str,
    site: str | None = None,
    service: SessionService = Depends(get_session_service),
    request_id: str = Depends(get_request_id),
) -> SessionStatusResponse:
    """Whether a session is still active, and how many messages it holds."""
    site = clean_site(site)
    session, count = await service.session_status(site, session_id, request_id)
    return SessionStatusResponse(
        request_id=request_id,
        site=site,
        session_id=session.id,
        started_at=session.started_at,
        ended_at=session.ended_at,
        active=session.active,
        message_count=count,
    )


@router.get("/{session_id}/stream")
async def stream_session(
    session_id: str,
    site: str | None = None,
    last_id: str = Query(default="0", alias="lastId"),
    service: SessionService = Depends(get_session_service),
    events: EventStream = Depends(get_event_stream),
    request_id: str = Depends(get_request_id),
) -> EventSourceResponse:
    """
    Stream events for a session via Server-Sent Events.

    Args:
        session_id: Session to stream
        site: Site owning the session
        last_id: Resume from this event ID ("0" for all history, "$" for new only)
    """
    await service.session_status(clean_site(site), session_id, request_id)
    return EventSourceResponse(sse_frames(events, session_id, last_id))
