"""Client for the OpenAI-compatible text-generation capability."""

import logging
import time
from typing import Any

import httpx

from convergo.config import Settings

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The capability is unavailable or answered without a usable envelope."""


def extract_content(data: Any) -> str:
    """Pull ``choices[0].message.content`` out of a completion response."""
    if not isinstance(data, dict):
        raise GenerationError("response is not an object")
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        raise GenerationError("response missing choices")
    first = choices[0]
    if not isinstance(first, dict) or not isinstance(first.get("message"), dict):
        raise GenerationError("response missing choices[0].message")
    content = first["message"].get("content")
    if not isinstance(content, str):
        raise GenerationError("response missing message.content")
    return content


class GenerationClient:
    """
    One chat-completion POST per call.

    Non-success statuses, timeouts, network errors and malformed envelopes
    raise GenerationError. Whatever text the model returns is passed back
    as-is (trimmed); judging its quality is the caller's job.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-5.2",
        base_url: str = "https://api.openai.com/v1",
        timeout_ms: int = 20000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "GenerationClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_ms=settings.openai_timeout_ms,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def complete(self, messages: list[dict[str, str]], request_id: str) -> str:
        """Send chat messages and return the assistant's text."""
        if not self.api_key:
            raise GenerationError("OPENAI_API_KEY is missing")

        url = f"{self.base_url}/chat/completions"
        started = time.monotonic()
        async with httpx.AsyncClient(
            timeout=self.timeout_ms / 1000, transport=self._transport
        ) as client:
            try:
                response = await client.post(
                    url,
                    json={"model": self.model, "messages": messages},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            except httpx.TimeoutException as exc:
                raise GenerationError(f"request timed out after {self.timeout_ms}ms") from exc
            except httpx.HTTPError as exc:
                elapsed = int((time.monotonic() - started) * 1000)
                raise GenerationError(f"network error after {elapsed}ms: {exc}") from exc

        elapsed = int((time.monotonic() - started) * 1000)
        if response.is_error:
            logger.error(
                "[openai:complete][%s] not ok status=%s ms=%s body=%r",
                request_id,
                response.status_code,
                elapsed,
                response.text[:300],
            )
            raise GenerationError(f"generation error {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationError("generation returned a non-JSON response") from exc

        content = extract_content(data)
        logger.info(
            "[openai:complete][%s] ok model=%s ms=%s out_chars=%s",
            request_id,
            self.model,
            elapsed,
            len(content),
        )
        return content.strip()
