"""Runtime configuration loaded from the environment."""

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel

DEFAULT_COMPANION_PROMPT = (
    "You are an AI diary companion. Be warm, concise, and helpful. "
    "Keep responses short unless asked for detail. Use plain ASCII punctuation."
)

# data/convergo.db at the project root
DEFAULT_DATABASE_URL = f"sqlite+aiosqlite:///{Path(__file__).parent.parent.parent / 'data' / 'convergo.db'}"
DEFAULT_REDIS_URL = "redis://localhost:6379"


def _positive_int(name: str, default: int) -> int:
    """Read a positive integer, falling back to the default on junk values."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(float(raw))
    except (ValueError, OverflowError):
        return default
    return value if value > 0 else default


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


class Settings(BaseModel):
    """All recognized options, with the defaults used when a variable is unset."""

    # Text-generation capability (OpenAI-compatible chat completions)
    openai_api_key: str | None = None
    openai_model: str = "gpt-5.2"
    openai_base_url: str = "https://api.openai.com/v1"
    openai_timeout_ms: int = 20000

    # Storage and live events
    database_url: str = DEFAULT_DATABASE_URL
    redis_url: str = DEFAULT_REDIS_URL
    redis_timeout_ms: int = 1000

    # WordPress REST publishing
    wp_base_url: str | None = None
    wp_username: str | None = None
    wp_app_password: str | None = None
    wp_timeout_ms: int = 15000

    # Guardrails and transcript budgets
    max_message_chars: int = 4000
    max_session_messages: int = 80
    draft_max_messages: int = 120
    draft_max_chars: int = 120000

    api_key: str | None = None
    allowed_origins: list[str] = ["http://localhost:3000"]
    companion_prompt: str = DEFAULT_COMPANION_PROMPT
    log_level: str = "INFO"

    @property
    def publishing_configured(self) -> bool:
        return bool(self.wp_base_url and self.wp_username and self.wp_app_password)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        origins = os.getenv("CONVERGO_ALLOWED_ORIGINS", "http://localhost:3000")
        return cls(
            database_url=_optional("DATABASE_URL") or DEFAULT_DATABASE_URL,
            redis_url=_optional("REDIS_URL") or DEFAULT_REDIS_URL,
            redis_timeout_ms=_positive_int("REDIS_TIMEOUT_MS", 1000),
            openai_api_key=_optional("OPENAI_API_KEY"),
            openai_model=_optional("OPENAI_MODEL") or "gpt-5.2",
            openai_base_url=_optional("OPENAI_BASE_URL") or "https://api.openai.com/v1",
            openai_timeout_ms=_positive_int("OPENAI_TIMEOUT_MS", 20000),
            wp_base_url=_optional("WP_BASE_URL"),
            wp_username=_optional("WP_USERNAME"),
            wp_app_password=_optional("WP_APP_PASSWORD"),
            wp_timeout_ms=_positive_int("WP_TIMEOUT_MS", 15000),
            max_message_chars=_positive_int("CONVERGO_MAX_MESSAGE_CHARS", 4000),
            max_session_messages=_positive_int("CONVERGO_MAX_SESSION_MESSAGES", 80),
            draft_max_messages=_positive_int("CONVERGO_DRAFT_MAX_MESSAGES", 120),
            draft_max_chars=_positive_int("CONVERGO_DRAFT_MAX_CHARS", 120000),
            api_key=_optional("CONVERGO_API_KEY"),
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
            companion_prompt=_optional("CONVERGO_COMPANION_PROMPT") or DEFAULT_COMPANION_PROMPT,
            log_level=(_optional("LOG_LEVEL") or "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, overridden in tests."""
    return Settings.from_env()
