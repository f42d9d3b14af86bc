"""
response_parser.py — Sentiment Aura Engine · Model Output Recovery
==================================================================
Two steps between a provider envelope and the builder:

  extract_text(envelope)  → the model's text, whatever envelope shape it came in
  parse(raw_text)         → the JSON object inside that text, or None

The model is told to emit bare JSON but regularly wraps it in prose, uses
single quotes, leaves keys unquoted or adds trailing commas.  `parse` does
one bounded repair pass for those and then gives up quietly.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

log = logging.getLogger("sentiment_aura.parser")

_OBJECT_SPAN_RE     = re.compile(r"\{[\s\S]*\}")
_TRAILING_COMMA_RE  = re.compile(r",\s*([}\]])")
_BARE_KEY_RE        = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_STRING_RE          = re.compile(r'("(?:\\.|[^"\\])*")')


def _quote_bare_keys(text: str) -> str:
    # odd-indexed parts are string literals and stay untouched
    parts = _STRING_RE.split(text)
    for i in range(0, len(parts), 2):
        parts[i] = _BARE_KEY_RE.sub(r'\1"\2"\3', parts[i])
    return "".join(parts)


def _repair(candidate: str) -> str:
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", candidate)
    cleaned = cleaned.replace("'", '"')
    return _quote_bare_keys(cleaned)


def _loads_object(candidate: str) -> Optional[dict]:
    try:
        value = json.loads(candidate)
    except (ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def parse(raw_text: Any) -> Optional[dict]:
    """Extract the greedy first-`{`-to-last-`}` object from free text."""
    if not raw_text or not isinstance(raw_text, str):
        return None

    match = _OBJECT_SPAN_RE.search(raw_text)
    if match is None:
        return None

    candidate = match.group(0)
    parsed = _loads_object(candidate)
    if parsed is not None:
        return parsed

    parsed = _loads_object(_repair(candidate))
    if parsed is None:
        log.debug("event=parse_failed span_len=%d", len(candidate))
    return parsed


# ---------------------------------------------------------------------------
# Provider envelope → text
# ---------------------------------------------------------------------------

def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return None


def _dig(value: Any, *path: Any) -> Any:
    for key in path:
        if isinstance(key, int):
            if not isinstance(value, list) or len(value) <= key:
                return None
            value = value[key]
        else:
            if not isinstance(value, dict):
                return None
            value = value.get(key)
    return value


# Fixed priority: Gemini, chat completions (Groq/OpenAI), generic output list, `response`
def _candidate(envelope: dict) -> Any:
    for getter in (
        lambda e: _first(e.get("candidates")),
        lambda e: _first(e.get("choices")),
        lambda e: _first(e.get("output")),
        lambda e: e.get("response"),
    ):
        found = getter(envelope)
        if found:
            return found
    return None


def _text_from_candidate(candidate: Any) -> Any:
    if isinstance(candidate, str):
        return candidate
    for path in (
        ("content", "parts", 0, "text"),
        ("content", "parts", 0),
        ("message", "content"),
        ("content",),
        ("text",),
        ("content", 0, "text"),
    ):
        text = _dig(candidate, *path)
        if isinstance(text, str) and text:
            return text
    return None


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


def extract_text(envelope: Any) -> str:
    """Model text from a provider response envelope, or a JSON dump of it."""
    if isinstance(envelope, str):
        return envelope
    if not isinstance(envelope, dict):
        return _dump(envelope if envelope is not None else "")

    candidate = _candidate(envelope)
    if candidate is None:
        return _dump(envelope)

    text = _text_from_candidate(candidate)
    if text is None:
        return _dump(candidate)
    return text


def structured_output(envelope: Any) -> Optional[dict]:
    if not isinstance(envelope, dict):
        return None
    for key in ("structuredOutput", "structured_output"):
        value = envelope.get(key)
        if isinstance(value, dict):
            return value
    return None
