"""Stream module for live session events."""

from .redis import EventStream, event_stream

__all__ = ["EventStream", "event_stream"]
