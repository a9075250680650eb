"""Redis Streams for live session events."""

import json
import logging
from typing import AsyncIterator

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import RedisError

from convergo.config import get_settings

logger = logging.getLogger(__name__)

STREAM_MAX_LEN = 1000  # Max events per session stream
STREAM_TTL = 86400  # 24 hours
STREAM_BLOCK_MS = 5000  # XREAD wait per poll


def _stream_key(session_id: str) -> str:
    """Get Redis stream key for a session."""
    return f"convergo:session:{session_id}:events"


class EventStream:
    """
    Redis Streams-based event streaming.

    Events are notifications only; the database stays the source of truth:
    - Writers add events with XADD (``message``, ``session_ended``)
    - Readers use XREAD from any position
    - Readers can disconnect and reconnect with last_id
    """

    def __init__(self, url: str | None = None, timeout_ms: int | None = None):
        settings = get_settings()
        self.url = url or settings.redis_url
        self.timeout = (timeout_ms or settings.redis_timeout_ms) / 1000
        self._redis: Redis | None = None

    async def _get_redis(self) -> Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            # Reads must outlast one blocking XREAD
            self._redis = Redis.from_url(
                self.url,
                decode_responses=True,
                socket_connect_timeout=self.timeout,
                socket_timeout=self.timeout + STREAM_BLOCK_MS / 1000,
                retry=Retry(NoBackoff(), 0),
            )
        return self._redis

    async def publish(
        self,
        session_id: str,
        event_type: str,
        data: dict,
    ) -> str:
        """
        Publish an event to a session's stream.

        Returns the event ID.
        """
        redis = await self._get_redis()
        key = _stream_key(session_id)

        event_id = await redis.xadd(
            key,
            {"type": event_type, "data": json.dumps(data, default=str)},
            maxlen=STREAM_MAX_LEN,
        )

        # Stream auto-expires if no new events
        await redis.expire(key, STREAM_TTL)

        return event_id

    async def notify(
        self,
        session_id: str,
        event_type: str,
        data: dict,
        request_id: str,
    ) -> str | None:
        """Publish without failing the caller when Redis is unreachable."""
        try:
            return await self.publish(session_id, event_type, data)
        except (RedisError, OSError):
            logger.warning(
                "[events:%s][%s] could not publish for session %s",
                event_type,
                request_id,
                session_id,
                exc_info=True,
            )
            return None

    async def subscribe(
        self,
        session_id: str,
        last_id: str = "0",
        block_ms: int = STREAM_BLOCK_MS,
    ) -> AsyncIterator[tuple[str, str, dict]]:
        """
        Subscribe to a session's event stream.

        Args:
            session_id: Session to subscribe to
            last_id: Start reading after this ID ("0" for all, "$" for new only)
            block_ms: How long to block waiting for new events

        Yields:
            (event_id, event_type, data) tuples
        """
        redis = await self._get_redis()
        key = _stream_key(session_id)

        current_id = last_id
        while True:
            # XREAD blocks until new events or timeout
            result = await redis.xread({key: current_id}, block=block_ms, count=100)

            if not result:
                continue

            for _stream_key_name, events in result:
                for event_id, fields in events:
                    current_id = event_id
                    yield (
                        event_id,
                        fields["type"],
                        json.loads(fields["data"]),
                    )

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None


# Global instance
event_stream = EventStream()
