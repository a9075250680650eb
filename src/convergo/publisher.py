"""WordPress REST publishing with a bounded retry policy."""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable

import httpx

from convergo.config import Settings
from convergo.errors import ConvergoError, ErrorKind

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({408, 429})


def is_retryable_status(status: int | None) -> bool:
    """408, 429 and 5xx are transient. ``None`` stands for a timeout."""
    if status is None:
        return True
    return status in RETRYABLE_STATUSES or 500 <= status <= 599


@dataclass(frozen=True)
class RetryPolicy:
    """Exactly one retry, only for transient failures, each attempt with its own timeout."""

    max_attempts: int = 2
    timeout_seconds: float = 15.0
    retryable: Callable[[int | None], bool] = field(default=is_retryable_status)

    def should_retry(self, attempt: int, error: "PublishError") -> bool:
        return attempt < self.max_attempts and error.retryable


@dataclass(frozen=True)
class PublishedPost:
    id: int
    link: str | None = None


class PublishError(Exception):
    """A single failed publish attempt."""

    def __init__(self, message: str, status: int | None = None, retryable: bool = False):
        super().__init__(message)
        self.status = status
        self.retryable = retryable


class WordPressPublisher:
    """
    Creates draft posts through ``/wp-json/wp/v2/posts``.

    An attempt succeeds only with a 2xx status and a JSON body carrying an
    integer ``id``.
    """

    def __init__(
        self,
        base_url: str | None,
        username: str | None,
        app_password: str | None,
        policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.username = username or ""
        # Application passwords are displayed with spaces; WordPress wants them without
        self.app_password = re.sub(r"\s+", "", app_password or "")
        self.policy = policy or RetryPolicy()
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "WordPressPublisher":
        return cls(
            base_url=settings.wp_base_url,
            username=settings.wp_username,
            app_password=settings.wp_app_password,
            policy=RetryPolicy(timeout_seconds=settings.wp_timeout_ms / 1000),
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.username and self.app_password)

    @property
    def posts_url(self) -> str:
        return f"{self.base_url}/wp-json/wp/v2/posts"

    async def create_draft(self, title: str, html: str, request_id: str) -> PublishedPost:
        if not self.configured:
            logger.error("[wp:createDraft][%s] WP_BASE_URL/WP_USERNAME/WP_APP_PASSWORD missing", request_id)
            raise ConvergoError(ErrorKind.WP_DRAFT_FAILED, "Publishing is not configured.")

        payload = {"title": title, "content": html, "status": "draft"}
        attempt = 0
        async with httpx.AsyncClient(
            auth=httpx.BasicAuth(self.username, self.app_password),
            timeout=self.policy.timeout_seconds,
            transport=self._transport,
        ) as client:
            while True:
                attempt += 1
                try:
                    return await self._attempt(client, payload, attempt, request_id)
                except PublishError as exc:
                    if not self.policy.should_retry(attempt, exc):
                        raise self._to_convergo_error(exc, attempt) from exc
                    logger.warning(
                        "[wp:createDraft][%s] retrying once status=%s", request_id, exc.status
                    )

    async def _attempt(
        self, client: httpx.AsyncClient, payload: dict, attempt: int, request_id: str
    ) -> PublishedPost:
        started = time.monotonic()
        try:
            response = await client.post(
                self.posts_url,
                json=payload,
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException as exc:
            raise PublishError(
                f"request timed out after {self.policy.timeout_seconds}s",
                retryable=self.policy.retryable(None),
            ) from exc
        except httpx.HTTPError as exc:
            raise PublishError(f"network error: {exc}") from exc

        elapsed = int((time.monotonic() - started) * 1000)
        head = response.text[:250]

        if response.is_error:
            logger.error(
                "[wp:createDraft][%s] WP not ok attempt=%s status=%s ms=%s body=%r",
                request_id,
                attempt,
                response.status_code,
                elapsed,
                head,
            )
            raise PublishError(
                f"WP error {response.status_code}",
                status=response.status_code,
                retryable=self.policy.retryable(response.status_code),
            )

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("[wp:createDraft][%s] non-JSON response body=%r", request_id, head)
            raise PublishError(
                f"WP returned non-JSON response (status {response.status_code})",
                status=response.status_code,
            ) from exc

        post_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(post_id, int) or isinstance(post_id, bool):
            logger.error("[wp:createDraft][%s] response missing id body=%r", request_id, head)
            raise PublishError("WP response missing expected fields", status=response.status_code)

        link = data.get("link")
        logger.info(
            "[wp:createDraft][%s] ok attempt=%s status=%s ms=%s post_id=%s",
            request_id,
            attempt,
            response.status_code,
            elapsed,
            post_id,
        )
        return PublishedPost(id=post_id, link=link if isinstance(link, str) else None)

    @staticmethod
    def _to_convergo_error(exc: PublishError, attempts: int) -> ConvergoError:
        details = {"status": exc.status, "attempts": attempts}
        if exc.status == 401:
            return ConvergoError(
                ErrorKind.WP_AUTH_FAILED,
                "WordPress rejected the configured credentials.",
                details,
            )
        if exc.status == 403:
            return ConvergoError(
                ErrorKind.WP_FORBIDDEN,
                "WordPress user is not allowed to create posts.",
                details,
            )
        return ConvergoError(
            ErrorKind.WP_DRAFT_FAILED,
            "Publishing the draft failed.",
            details,
        )
