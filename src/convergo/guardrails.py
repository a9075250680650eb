"""Size and count limits checked before any message is written."""

from dataclasses import dataclass

from convergo.errors import ConvergoError, ErrorKind


def normalize_role(role: str | None) -> str:
    """Anything other than "assistant" is recorded as "user"."""
    if role is not None and role.strip() == "assistant":
        return "assistant"
    return "user"


@dataclass(frozen=True)
class GuardrailPolicy:
    """
    Pure validation of message writes.

    - Content must be non-empty once trimmed
    - Content must fit within max_message_chars
    - A session holds at most max_session_messages messages
    """

    max_message_chars: int = 4000
    max_session_messages: int = 80

    def check_content(self, content: str | None) -> str:
        """Validate content and return it trimmed."""
        text = (content or "").strip()
        if not text:
            raise ConvergoError(ErrorKind.MISSING_CONTENT, "content is required.")
        if len(text) > self.max_message_chars:
            raise ConvergoError(
                ErrorKind.MESSAGE_TOO_LONG,
                f"content too long (max {self.max_message_chars} chars).",
                {"length": len(text), "max": self.max_message_chars},
            )
        return text

    def check_session_capacity(self, current_count: int, incoming: int = 1) -> None:
        """Fail if ``incoming`` more messages would not fit in the session."""
        if current_count + incoming > self.max_session_messages:
            raise ConvergoError(
                ErrorKind.SESSION_MESSAGE_LIMIT_REACHED,
                f"session message limit reached (max {self.max_session_messages}).",
                {"count": current_count, "max": self.max_session_messages},
            )
