"""Turn a session transcript into a structured article draft."""

import json
import logging
from dataclasses import dataclass

from pydantic import BaseModel, ValidationError

from convergo.errors import ConvergoError, ErrorKind
from convergo.generation import GenerationClient, GenerationError
from convergo.text import escape_html, escape_multiline

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You convert a human+AI session transcript into a WordPress draft article.
Output MUST be valid JSON only (no markdown fences, no extra text).
Use simple WordPress-friendly HTML in body_html: <p>, <h2>, <ul>, <li>, <strong>, <em>.
Keep it concise and readable."""

USER_PROMPT = """\
Create a draft article from this session.

Return JSON with exactly:
{{
  "title": "...",
  "body_html": "...",
  "excerpt": "..."
}}

Session transcript:
{transcript}"""

FALLBACK_EXCERPT = "Draft generated by ConVergo (needs review)."


class Draft(BaseModel):
    title: str
    body_html: str
    excerpt: str

    class Config:
        strict = True


@dataclass(frozen=True)
class Parsed:
    draft: Draft


@dataclass(frozen=True)
class Malformed:
    raw: str
    reason: str


def fallback_title(site: str) -> str:
    return f"ConVergo Article Draft - {site}"


def build_prompt(transcript: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_PROMPT.format(transcript=transcript)},
    ]


def extract_json_candidate(text: str) -> str:
    """The span from the first "{" to the last "}", or the text unchanged."""
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        return text[start:end + 1]
    return text


def parse_draft(raw: str) -> Parsed | Malformed:
    candidate = extract_json_candidate(raw.strip())
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return Malformed(raw, f"invalid JSON: {exc.msg}")
    if not isinstance(data, dict):
        return Malformed(raw, "JSON is not an object")
    try:
        return Parsed(Draft.model_validate(data))
    except ValidationError:
        return Malformed(raw, "JSON shape mismatch")


def fallback_draft(raw: str, site: str) -> Draft:
    """A reviewable draft that carries the unusable model output verbatim."""
    safe = escape_multiline(raw.strip())
    return Draft(
        title=fallback_title(site),
        body_html=f"<p><em>AI returned invalid JSON. Raw output below:</em></p><p>{safe}</p>",
        excerpt=FALLBACK_EXCERPT,
    )


def render_html(draft: Draft) -> str:
    """Post body: the excerpt as an italic lead paragraph, then the article."""
    excerpt = draft.excerpt.strip()
    lead = f"<p><em>{escape_html(excerpt)}</em></p>" if excerpt else ""
    return lead + draft.body_html.strip()


@dataclass(frozen=True)
class ComposedDraft:
    draft: Draft
    degraded: bool = False

    def title_for(self, site: str) -> str:
        return self.draft.title.strip() or fallback_title(site)


class DraftComposer:
    """Calls the generation capability and degrades unusable output to a fallback draft."""

    def __init__(self, generation: GenerationClient):
        self.generation = generation

    async def compose(self, transcript: str, site: str, request_id: str) -> ComposedDraft:
        try:
            raw = await self.generation.complete(build_prompt(transcript), request_id)
        except GenerationError as exc:
            logger.error("[draft:compose][%s] generation failed: %s", request_id, exc)
            raise ConvergoError(
                ErrorKind.DRAFT_GENERATION_FAILED,
                "Draft generation failed. Please try again.",
            ) from exc

        result = parse_draft(raw)
        if isinstance(result, Parsed):
            return ComposedDraft(result.draft)

        logger.warning(
            "[draft:compose][%s] falling back to raw output (%s)", request_id, result.reason
        )
        return ComposedDraft(fallback_draft(result.raw, site), degraded=True)
