"""Session lifecycle and message writes, guarded by the guardrail policy."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

from convergo.db import Conversation, Message, Session
from convergo.errors import ConvergoError, ErrorKind
from convergo.guardrails import GuardrailPolicy, normalize_role
from convergo.store import ConversationStore, ReadResult
from convergo.stream import EventStream

logger = logging.getLogger(__name__)

STORAGE_UNAVAILABLE = "Storage is temporarily unavailable. Please try again."


@contextmanager
def persistence_errors(operation: str, request_id: str) -> Iterator[None]:
    """Translate storage failures into PERSISTENCE_UNAVAILABLE."""
    try:
        yield
    except (SQLAlchemyError, OSError) as exc:
        logger.error("[%s][%s] persistence failure", operation, request_id, exc_info=True)
        raise ConvergoError(ErrorKind.PERSISTENCE_UNAVAILABLE, STORAGE_UNAVAILABLE) from exc


def message_event(message: Message) -> dict:
    return {
        "id": message.id,
        "role": message.role,
        "content": message.content,
        "createdAt": message.created_at.isoformat(),
    }


async def resolve_owned_session(
    store: ConversationStore, site: str, session_id: str
) -> tuple[Conversation, Session]:
    """Find a session and check it belongs to the site's conversation."""
    conversation = await store.find_conversation(site)
    session = await store.get_session(session_id) if session_id else None
    if conversation is None or session is None or session.conversation_id != conversation.id:
        raise ConvergoError(ErrorKind.SESSION_NOT_FOUND, "Session not found for site.")
    return conversation, session


class SessionService:
    """Starts sessions and records turns. Ending a session lives in the pipeline."""

    def __init__(self, store: ConversationStore, policy: GuardrailPolicy, events: EventStream):
        self.store = store
        self.policy = policy
        self.events = events

    async def start_session(self, site: str, request_id: str) -> tuple[Conversation, Session]:
        with persistence_errors("session:start", request_id):
            conversation = await self.store.upsert_conversation(site)
            session = await self.store.create_session(conversation)
            await self.store.commit()
        logger.info("[session:start][%s] site=%s session=%s", request_id, site, session.id)
        return conversation, session

    async def write_message(
        self,
        site: str,
        session_id: str | None,
        role: str | None,
        content: str | None,
        request_id: str,
        reserve: int = 1,
    ) -> Message:
        """
        Validate and append one message.

        ``reserve`` is how many messages the caller is about to add to the
        session in total; the companion chat reserves room for its reply.
        """
        text = self.policy.check_content(content)
        role = normalize_role(role)

        with persistence_errors("message:write", request_id):
            if session_id:
                conversation, session = await resolve_owned_session(self.store, site, session_id)
                if session.ended_at is not None:
                    raise ConvergoError(ErrorKind.SESSION_ENDED, "Session has already ended.")
                count = await self.store.count_session_messages(session.id)
                self.policy.check_session_capacity(count, reserve)
            else:
                conversation = await self.store.upsert_conversation(site)

            message = await self.store.append_message(conversation, role, text, session_id or None)
            await self.store.commit()

        if message.session_id:
            await self.events.notify(message.session_id, "message", message_event(message), request_id)
        return message

    async def list_messages(
        self,
        site: str,
        session_id: str | None,
        limit: int | None,
        request_id: str,
    ) -> ReadResult[Message]:
        """History read; storage failures degrade to an empty result."""
        try:
            conversation = await self.store.find_conversation(site)
            if conversation is None:
                return ReadResult.of([])
            if session_id:
                await resolve_owned_session(self.store, site, session_id)
            messages = await self.store.list_messages(conversation, session_id or None, limit)
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("[messages:list][%s] storage unavailable, returning empty", request_id, exc_info=True)
            return ReadResult.unavailable(exc)
        return ReadResult.of(messages)

    async def session_status(self, site: str, session_id: str, request_id: str) -> tuple[Session, int]:
        with persistence_errors("session:status", request_id):
            _, session = await resolve_owned_session(self.store, site, session_id)
            count = await self.store.count_session_messages(session.id)
        return session, count

    async def feed(self, site: str | None, limit: int, request_id: str) -> ReadResult[tuple[Message, str]]:
        try:
            rows = await self.store.recent_messages(site, limit)
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("[feed][%s] storage unavailable, returning empty", request_id, exc_info=True)
            return ReadResult.unavailable(exc)
        return ReadResult.of(rows)
