"""Persistence for conversations, sessions and messages.

The store is the only place that talks SQL. It raises SQLAlchemy errors
untouched; the services decide whether a failure degrades or propagates.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Generic, TypeVar
from uuid import uuid4

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from convergo.db import Conversation, Message, Session

T = TypeVar("T")

# Smallest step used to keep created_at strictly increasing per conversation
_TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ReadStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """Outcome of a read that may legitimately find nothing or fail to reach storage."""

    status: ReadStatus
    items: list[T] = field(default_factory=list)
    error: Exception | None = None

    @classmethod
    def of(cls, items: list[T]) -> "ReadResult[T]":
        return cls(ReadStatus.OK if items else ReadStatus.EMPTY, list(items))

    @classmethod
    def unavailable(cls, error: Exception) -> "ReadResult[T]":
        return cls(ReadStatus.UNAVAILABLE, [], error)

    @property
    def degraded(self) -> bool:
        return self.status is ReadStatus.UNAVAILABLE


class ConversationStore:
    """Append-only message store scoped by site and session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        return sqlite.insert

    # --- Conversations ---

    async def find_conversation(self, site: str) -> Conversation | None:
        result = await self.db.execute(select(Conversation).where(Conversation.site == site))
        return result.scalar_one_or_none()

    async def upsert_conversation(self, site: str) -> Conversation:
        """Return the site's conversation, creating it on first use."""
        existing = await self.find_conversation(site)
        if existing is not None:
            return existing

        # Concurrent first writers race on the unique site; the loser inserts nothing
        stmt = (
            self._insert()(Conversation)
            .values(id=str(uuid4()), site=site)
            .on_conflict_do_nothing(index_elements=["site"])
        )
        await self.db.execute(stmt)
        result = await self.db.execute(select(Conversation).where(Conversation.site == site))
        return result.scalar_one()

    # --- Sessions ---

    async def create_session(self, conversation: Conversation) -> Session:
        session = Session(
            id=str(uuid4()),
            conversation_id=conversation.id,
            started_at=utcnow(),
            ended_at=None,
        )
        self.db.add(session)
        await self.db.flush()
        return session

    async def get_session(self, session_id: str) -> Session | None:
        return await self.db.get(Session, session_id)

    async def mark_ended(self, session: Session, message_count: int) -> datetime | None:
        """
        Set ended_at if it is still null and the session still holds
        exactly ``message_count`` messages. Returns the stored value.

        The first caller wins; later calls leave the original timestamp.
        Returns None when messages arrived after the snapshot, leaving the
        session active.
        """
        last = await self.db.execute(
            select(func.max(Message.created_at)).where(Message.session_id == session.id)
        )
        last_created = last.scalar_one_or_none()
        ended_at = utcnow()
        if last_created is not None and ended_at <= last_created:
            ended_at = last_created + _TICK

        count = (
            select(func.count())
            .select_from(Message)
            .where(Message.session_id == session.id)
            .scalar_subquery()
        )
        await self.db.execute(
            update(Session)
            .where(Session.id == session.id, Session.ended_at.is_(None), count == message_count)
            .values(ended_at=ended_at)
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(session)
        return session.ended_at

    # --- Messages ---

    async def count_session_messages(self, session_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Message).where(Message.session_id == session_id)
        )
        return result.scalar_one()

    async def append_message(
        self,
        conversation: Conversation,
        role: str,
        content: str,
        session_id: str | None = None,
    ) -> Message:
        """Append a message with a created_at later than any before it in the conversation."""
        result = await self.db.execute(
            select(func.max(Message.created_at)).where(Message.conversation_id == conversation.id)
        )
        last = result.scalar_one_or_none()
        created_at = utcnow()
        if last is not None and created_at <= last:
            created_at = last + _TICK

        message = Message(
            id=str(uuid4()),
            conversation_id=conversation.id,
            session_id=session_id,
            role=role,
            content=content,
            created_at=created_at,
        )
        self.db.add(message)
        await self.db.flush()
        return message

    async def list_messages(
        self,
        conversation: Conversation,
        session_id: str | None = None,
        limit: int | None = None,
    ) -> list[Message]:
        """
        Messages in chronological order.

        With a session_id only that session's messages are returned. With a
        limit, the most recent ``limit`` messages are kept.
        """
        stmt = select(Message).where(Message.conversation_id == conversation.id)
        if session_id is not None:
            stmt = stmt.where(Message.session_id == session_id)

        if limit is None:
            result = await self.db.execute(stmt.order_by(Message.created_at.asc(), Message.seq.asc()))
            return list(result.scalars().all())

        result = await self.db.execute(stmt.order_by(Message.created_at.desc(), Message.seq.desc()).limit(limit))
        return list(reversed(result.scalars().all()))

    async def recent_messages(self, site: str | None, limit: int) -> list[tuple[Message, str]]:
        """Newest-first messages across sites, paired with their site."""
        stmt = (
            select(Message, Conversation.site)
            .join(Conversation, Message.conversation_id == Conversation.id)
            .order_by(Message.created_at.desc(), Message.seq.desc())
            .limit(limit)
        )
        if site:
            stmt = stmt.where(Conversation.site == site)
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
