"""
Tests for text helpers.
"""

from convergo.text import escape_html, escape_multiline, sanitize_text


def test_escape_html():
    assert escape_html("<a href=\"x\">'&'</a>") == "&lt;a href=&quot;x&quot;&gt;&#x27;&amp;&#x27;&lt;/a&gt;"


def test_escape_multiline():
    assert escape_multiline("a<b\nc") == "a&lt;b<br/>c"


def test_sanitize_folds_punctuation():
    assert sanitize_text("“Quote” ‘x’ – …") == "\"Quote\" 'x' - ..."


def test_sanitize_repairs_mojibake():
    assert sanitize_text("CafÃ©") == "Café"


def test_sanitize_leaves_clean_text():
    assert sanitize_text("plain text") == "plain text"
    assert sanitize_text("") == ""
    # Legitimate accented text that does not round-trip stays untouched
    assert sanitize_text("Ã la carte") == "Ã la carte"
