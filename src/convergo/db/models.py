"""SQLAlchemy models for conversations, sessions and messages."""

from datetime import datetime
from sqlalchemy import String, Text, ForeignKey, DateTime, Index, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Conversation(Base):
    """The durable per-site container of sessions and messages."""

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    site: Mapped[str] = mapped_column(String(255), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    sessions: Mapped[list["Session"]] = relationship(back_populates="conversation")
    messages: Mapped[list["Message"]] = relationship(back_populates="conversation")


class Session(Base):
    """A bounded conversational episode. Active while ended_at is null."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    conversation_id: Mapped[str] = mapped_column(String(36), ForeignKey("conversations.id"), index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime)

    conversation: Mapped["Conversation"] = relationship(back_populates="sessions")

    @property
    def active(self) -> bool:
        return self.ended_at is None


class Message(Base):
    """A single immutable turn, optionally tied to a session."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        Index("ix_messages_session_created", "session_id", "created_at"),
    )

    # Insertion order; breaks created_at ties
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True)
    conversation_id: Mapped[str] = mapped_column(String(36), ForeignKey("conversations.id"))
    session_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("sessions.id"))
    role: Mapped[str] = mapped_column(String(20))
    content: Mapped[str] = mapped_column(Text)
    # Assigned by the store, strictly increasing per conversation
    created_at: Mapped[datetime] = mapped_column(DateTime)

    conversation: Mapped["Conversation"] = relationship(back_populates="messages")
