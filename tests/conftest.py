"""
Test fixtures for ConVergo API tests.
"""

import json
import os

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
for _key in ("OPENAI_API_KEY", "WP_BASE_URL", "WP_USERNAME", "WP_APP_PASSWORD", "CONVERGO_API_KEY"):
    os.environ.pop(_key, None)

from convergo.main import app
from convergo.api.deps import get_event_stream, get_generation_client, get_publisher
from convergo.config import Settings, get_settings
from convergo.db.models import Base
from convergo.db.session import get_session
from convergo.generation import GenerationClient
from convergo.publisher import WordPressPublisher


def completion(content: str, status: int = 200) -> httpx.Response:
    """A chat-completions response carrying ``content``."""
    return httpx.Response(status, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


GOOD_DRAFT = json.dumps({"title": "T", "body_html": "<p>B</p>", "excerpt": "E"})


def timeout(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("timed out", request=request)


class ScriptedHTTP:
    """Replays queued responses and records every outbound request."""

    def __init__(self, default):
        self.default = default
        self.queue: list = []
        self.requests: list[httpx.Request] = []

    def push(self, *responses) -> None:
        self.queue.extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.queue.pop(0) if self.queue else self.default
        if callable(item):
            item = item(request)
        return item

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def json_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


class FakeEventStream:
    """Records notifications instead of writing to Redis."""

    def __init__(self):
        self.events: list[tuple[str, str, dict]] = []

    async def notify(self, session_id: str, event_type: str, data: dict, request_id: str):
        self.events.append((session_id, event_type, data))
        return f"{len(self.events)}-0"


@pytest.fixture
def settings():
    """Settings with both external systems configured."""
    return Settings(
        openai_api_key="sk-test",
        openai_base_url="https://llm.test/v1",
        wp_base_url="https://wp.test/",
        wp_username="editor",
        wp_app_password="abcd efgh ijkl",
    )


@pytest.fixture
def llm():
    return ScriptedHTTP(lambda request: completion(GOOD_DRAFT))


@pytest.fixture
def wp():
    return ScriptedHTTP(lambda request: httpx.Response(201, json={"id": 42, "link": "https://wp.test/?p=42"}))


@pytest.fixture
def events():
    return FakeEventStream()


@pytest.fixture
async def test_engine():
    """In-memory SQLite shared by every connection of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Direct database session for test setup/assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory, settings, llm, wp, events):
    """Async HTTP client for testing FastAPI app."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_event_stream] = lambda: events
    app.dependency_overrides[get_generation_client] = lambda: GenerationClient.from_settings(
        settings, transport=llm.transport
    )
    app.dependency_overrides[get_publisher] = lambda: WordPressPublisher.from_settings(
        settings, transport=wp.transport
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
