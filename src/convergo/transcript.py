"""Render a session's messages as a bounded plain-text transcript."""

from dataclasses import dataclass
from typing import Protocol, Sequence, TypeVar

from convergo.guardrails import normalize_role

SEPARATOR = "\n\n"

DEFAULT_MAX_MESSAGES = 120
DEFAULT_MAX_CHARS = 120000


class Turn(Protocol):
    role: str
    content: str


TurnT = TypeVar("TurnT", bound=Turn)


def format_line(turn: Turn) -> str:
    """One transcript line, e.g. ``USER: hello``."""
    return f"{normalize_role(turn.role).upper()}: {turn.content}"


def select_recent(
    turns: Sequence[TurnT],
    max_messages: int = DEFAULT_MAX_MESSAGES,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> list[TurnT]:
    """
    Keep the most recent turns that fit both budgets, in chronological order.

    Walks backward from the newest turn and stops before the first one that
    would overflow either budget. The newest turn is always kept, even when
    it alone exceeds max_chars.
    """
    kept: list[TurnT] = []
    used = 0
    for turn in reversed(turns):
        cost = len(format_line(turn)) + (len(SEPARATOR) if kept else 0)
        if kept and (len(kept) >= max_messages or used + cost > max_chars):
            break
        kept.append(turn)
        used += cost
    kept.reverse()
    return kept


@dataclass(frozen=True)
class Transcript:
    text: str
    included: int
    total: int

    @property
    def truncated(self) -> bool:
        return self.included < self.total


def build_transcript(
    turns: Sequence[Turn],
    max_messages: int = DEFAULT_MAX_MESSAGES,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> Transcript:
    kept = select_recent(turns, max_messages, max_chars)
    text = SEPARATOR.join(format_line(turn) for turn in kept)
    return Transcript(text=text, included=len(kept), total=len(turns))
