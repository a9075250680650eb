"""End a session and publish its transcript as a WordPress draft.

The session is only marked ended once the draft has been published, so a
failed generation or publish leaves it active and ``end`` can be retried.
A retried call regenerates the draft from scratch; nothing is cached.
If a message lands in the session while the draft is being published, the
session stays active and the caller gets SESSION_CHANGED.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from convergo.drafts import DraftComposer, render_html
from convergo.errors import ConvergoError, ErrorKind
from convergo.publisher import WordPressPublisher
from convergo.services import persistence_errors
from convergo.store import ConversationStore
from convergo.stream import EventStream
from convergo.transcript import DEFAULT_MAX_CHARS, DEFAULT_MAX_MESSAGES, build_transcript

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EndSessionResult:
    session_id: str
    started_at: datetime
    ended_at: datetime
    message_count: int
    published_id: int
    published_link: str | None
    draft_degraded: bool = False


class DraftPipeline:
    """Orchestrates store -> transcript -> composer -> publisher for one session."""

    def __init__(
        self,
        store: ConversationStore,
        composer: DraftComposer,
        publisher: WordPressPublisher,
        events: EventStream,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.store = store
        self.composer = composer
        self.publisher = publisher
        self.events = events
        self.max_messages = max_messages
        self.max_chars = max_chars

    async def end_session(self, site: str, session_id: str, request_id: str) -> EndSessionResult:
        with persistence_errors("session:end", request_id):
            conversation = await self.store.find_conversation(site)
            if conversation is None:
                raise ConvergoError(ErrorKind.CONVERSATION_NOT_FOUND, "Conversation not found.")

            session = await self.store.get_session(session_id) if session_id else None
            if session is None or session.conversation_id != conversation.id:
                raise ConvergoError(ErrorKind.SESSION_NOT_FOUND, "Session not found for site.")

            messages = await self.store.list_messages(conversation, session.id)

        if not messages:
            raise ConvergoError(
                ErrorKind.NO_MESSAGES,
                "Session has no messages. Add a message before ending it.",
            )

        transcript = build_transcript(messages, self.max_messages, self.max_chars)
        if transcript.truncated:
            logger.info(
                "[session:end][%s] transcript truncated to %s of %s messages",
                request_id,
                transcript.included,
                transcript.total,
            )

        composed = await self.composer.compose(transcript.text, site, request_id)
        post = await self.publisher.create_draft(
            composed.title_for(site), render_html(composed.draft), request_id
        )

        with persistence_errors("session:end", request_id):
            # Stamped now; refused if a message arrived while publishing
            ended_at = await self.store.mark_ended(session, len(messages))
            if ended_at is None:
                await self.store.rollback()
                raise ConvergoError(
                    ErrorKind.SESSION_CHANGED,
                    "Session received new messages while its draft was published. End it again.",
                    {"messageCount": len(messages)},
                )
            await self.store.commit()

        logger.info(
            "[session:end][%s] site=%s session=%s messages=%s post=%s degraded=%s",
            request_id,
            site,
            session.id,
            len(messages),
            post.id,
            composed.degraded,
        )
        await self.events.notify(
            session.id,
            "session_ended",
            {"endedAt": ended_at.isoformat(), "publishedId": post.id, "publishedLink": post.link},
            request_id,
        )
        return EndSessionResult(
            session_id=session.id,
            started_at=session.started_at,
            ended_at=ended_at,
            message_count=len(messages),
            published_id=post.id,
            published_link=post.link,
            draft_degraded=composed.degraded,
        )
