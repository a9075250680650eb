"""Error taxonomy shared by the services and the HTTP layer."""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Stable, machine-readable error kinds returned to clients."""

    # Guardrail violations
    MISSING_CONTENT = "MISSING_CONTENT"
    MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"
    SESSION_MESSAGE_LIMIT_REACHED = "SESSION_MESSAGE_LIMIT_REACHED"

    # State consistency
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    CONVERSATION_NOT_FOUND = "CONVERSATION_NOT_FOUND"
    SESSION_ENDED = "SESSION_ENDED"
    NO_MESSAGES = "NO_MESSAGES"
    SESSION_CHANGED = "SESSION_CHANGED"

    # External systems
    DRAFT_GENERATION_FAILED = "DRAFT_GENERATION_FAILED"
    WP_AUTH_FAILED = "WP_AUTH_FAILED"
    WP_FORBIDDEN = "WP_FORBIDDEN"
    WP_DRAFT_FAILED = "WP_DRAFT_FAILED"

    PERSISTENCE_UNAVAILABLE = "PERSISTENCE_UNAVAILABLE"

    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_REQUEST = "INVALID_REQUEST"
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.MISSING_CONTENT: 400,
    ErrorKind.MESSAGE_TOO_LONG: 400,
    ErrorKind.SESSION_MESSAGE_LIMIT_REACHED: 409,
    ErrorKind.SESSION_NOT_FOUND: 404,
    ErrorKind.CONVERSATION_NOT_FOUND: 404,
    ErrorKind.SESSION_ENDED: 409,
    ErrorKind.NO_MESSAGES: 409,
    ErrorKind.SESSION_CHANGED: 409,
    ErrorKind.DRAFT_GENERATION_FAILED: 502,
    ErrorKind.WP_AUTH_FAILED: 502,
    ErrorKind.WP_FORBIDDEN: 502,
    ErrorKind.WP_DRAFT_FAILED: 502,
    ErrorKind.PERSISTENCE_UNAVAILABLE: 503,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.INTERNAL_ERROR: 500,
}


class ConvergoError(Exception):
    """A failure with a stable kind and a client-safe message.

    ``message`` is shown to clients, so it must never carry stack traces,
    connection strings or raw upstream bodies. Put diagnostic context in
    the server-side log instead.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    def to_dict(self, request_id: str) -> dict[str, Any]:
        error: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "requestId": request_id,
        }
        if self.details:
            error["details"] = self.details
        return {"ok": False, "error": error}

    def __repr__(self) -> str:
        return f"ConvergoError({self.kind.value}, {self.message!r})"
