"""
Tests for draft parsing, fallback and composition.
"""

import httpx
import pytest

from conftest import GOOD_DRAFT, ScriptedHTTP, completion
from convergo.drafts import (
    DraftComposer,
    Draft,
    Malformed,
    Parsed,
    extract_json_candidate,
    fallback_draft,
    parse_draft,
    render_html,
)
from convergo.errors import ConvergoError, ErrorKind
from convergo.generation import GenerationClient


def test_well_formed_output_round_trips():
    result = parse_draft(GOOD_DRAFT)

    assert isinstance(result, Parsed)
    assert result.draft == Draft(title="T", body_html="<p>B</p>", excerpt="E")


def test_wrapping_text_is_ignored():
    raw = 'Sure! Here you go:\n```json\n{"title": "T", "body_html": "<p>B</p>", "excerpt": "E"}\n```'

    assert extract_json_candidate(raw).startswith("{")
    assert isinstance(parse_draft(raw), Parsed)


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        '{"title": "T", "body_html": "<p>B</p>"}',
        '{"title": 1, "body_html": "<p>B</p>", "excerpt": "E"}',
        '{"title": "T", broken',
    ],
)
def test_malformed_outputs(raw):
    assert isinstance(parse_draft(raw), Malformed)


def test_fallback_draft_escapes_raw_output():
    draft = fallback_draft('line <one>\nline "two"', "acme")

    assert draft.title == "ConVergo Article Draft - acme"
    assert "line &lt;one&gt;<br/>line &quot;two&quot;" in draft.body_html
    assert draft.excerpt == "Draft generated by ConVergo (needs review)."


def test_render_html_leads_with_excerpt():
    draft = Draft(title="T", body_html="<p>B</p>", excerpt="Fish & chips")
    assert render_html(draft) == "<p><em>Fish &amp; chips</em></p><p>B</p>"
    assert render_html(Draft(title="T", body_html="<p>B</p>", excerpt="")) == "<p>B</p>"


def composer_for(http: ScriptedHTTP) -> DraftComposer:
    client = GenerationClient("sk-test", base_url="https://llm.test/v1", transport=http.transport)
    return DraftComposer(client)


@pytest.mark.asyncio
async def test_compose_parsed():
    http = ScriptedHTTP(lambda request: completion(GOOD_DRAFT))

    composed = await composer_for(http).compose("USER: hi", "acme", "req-1")

    assert composed.degraded is False
    assert composed.draft.title == "T"
    assert composed.title_for("acme") == "T"


@pytest.mark.asyncio
async def test_compose_degrades_on_malformed_output():
    http = ScriptedHTTP(lambda request: completion("not json"))

    composed = await composer_for(http).compose("USER: hi", "acme", "req-1")

    assert composed.degraded is True
    assert composed.draft.title == "ConVergo Article Draft - acme"
    assert "not json" in composed.draft.body_html


@pytest.mark.asyncio
async def test_compose_empty_title_falls_back():
    http = ScriptedHTTP(lambda request: completion('{"title": " ", "body_html": "<p>B</p>", "excerpt": ""}'))

    composed = await composer_for(http).compose("USER: hi", "acme", "req-1")

    assert composed.title_for("acme") == "ConVergo Article Draft - acme"


@pytest.mark.asyncio
async def test_compose_raises_when_capability_fails():
    http = ScriptedHTTP(lambda request: httpx.Response(429, json={"error": "rate limited"}))

    with pytest.raises(ConvergoError) as excinfo:
        await composer_for(http).compose("USER: hi", "acme", "req-1")

    assert excinfo.value.kind is ErrorKind.DRAFT_GENERATION_FAILED


@pytest.mark.asyncio
async def test_compose_without_api_key():
    composer = DraftComposer(GenerationClient(None))

    with pytest.raises(ConvergoError) as excinfo:
        await composer.compose("USER: hi", "acme", "req-1")

    assert excinfo.value.kind is ErrorKind.DRAFT_GENERATION_FAILED
