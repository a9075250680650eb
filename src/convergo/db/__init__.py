"""Database module for ConVergo."""

from .models import Base, Conversation, Session, Message
from .session import engine, async_session, get_session, DATABASE_URL

__all__ = [
    "Base",
    "Conversation",
    "Session",
    "Message",
    "engine",
    "async_session",
    "get_session",
    "DATABASE_URL",
]
