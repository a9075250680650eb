"""Text clean-up helpers for stored turns and generated HTML."""

import html
import re

# Markers left behind when UTF-8 text is decoded as cp1252
_MOJIBAKE_MARKERS = re.compile("[Ãâ]")

_PUNCTUATION = {
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
    "–": "-",
    "—": "-",
    "…": "...",
}


def escape_html(text: str) -> str:
    return html.escape(text, quote=True)


def escape_multiline(text: str) -> str:
    """Escape text and render its line breaks as <br/>."""
    return escape_html(text).replace("\n", "<br/>")


def _repair_mojibake(text: str) -> str:
    if not _MOJIBAKE_MARKERS.search(text):
        return text
    try:
        repaired = text.encode("cp1252").decode("utf-8")
    except UnicodeError:
        return text
    # Only keep the repair if it actually reduced the damage
    if len(_MOJIBAKE_MARKERS.findall(repaired)) < len(_MOJIBAKE_MARKERS.findall(text)):
        return repaired
    return text


def sanitize_text(text: str) -> str:
    """Repair common mojibake and fold typographic punctuation to ASCII."""
    if not text:
        return text
    text = _repair_mojibake(text)
    for fancy, plain in _PUNCTUATION.items():
        text = text.replace(fancy, plain)
    return text
