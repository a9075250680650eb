"""
Tests for the text-generation client.
"""

import httpx
import pytest

from conftest import ScriptedHTTP, completion, timeout
from convergo.config import Settings
from convergo.generation import GenerationClient, GenerationError, extract_content


def client_for(http: ScriptedHTTP) -> GenerationClient:
    return GenerationClient("sk-test", model="m-1", base_url="https://llm.test/v1/", transport=http.transport)


@pytest.mark.asyncio
async def test_complete_returns_trimmed_content():
    http = ScriptedHTTP(completion("  hello  "))

    text = await client_for(http).complete([{"role": "user", "content": "hi"}], "req-1")

    assert text == "hello"
    request = http.requests[0]
    assert str(request.url) == "https://llm.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert http.json_bodies() == [{"model": "m-1", "messages": [{"role": "user", "content": "hi"}]}]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(401, json={"error": "bad key"}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"choices": [{"message": {"content": None}}]}),
    ],
)
async def test_unusable_responses_raise(response):
    http = ScriptedHTTP(response)

    with pytest.raises(GenerationError):
        await client_for(http).complete([], "req-1")


@pytest.mark.asyncio
async def test_timeout_raises():
    http = ScriptedHTTP(timeout)

    with pytest.raises(GenerationError, match="timed out"):
        await client_for(http).complete([], "req-1")


@pytest.mark.parametrize(
    "data",
    [None, [], {}, {"choices": []}, {"choices": ["x"]}, {"choices": [{"message": "x"}]}],
)
def test_extract_content_rejects_bad_envelopes(data):
    with pytest.raises(GenerationError):
        extract_content(data)


def test_from_settings():
    settings = Settings(openai_api_key="k", openai_model="gpt-x", openai_timeout_ms=1500)

    client = GenerationClient.from_settings(settings)

    assert client.configured
    assert client.model == "gpt-x"
    assert client.timeout_ms == 1500
    assert not GenerationClient(None).configured
