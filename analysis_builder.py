"""
analysis_builder.py — Sentiment Aura Engine · Canonical Result Assembly
=======================================================================
Composes the parser output, the field normalizers and the keyword miner
into one `AnalysisResult`.  `build` is total: a `None` parse (the model
answered with no recoverable JSON) yields a fully derived result.

Also home to the two classifier-free results:
  • build_local_fallback — upstream unreachable or answer unusable
  • build_neutral        — input too short to be worth a round trip
"""

from __future__ import annotations

import re
from typing import Any, Optional

from keywords import dedupe_keywords, extract_keywords
from models import MAX_KEYWORDS, MAX_SUMMARY_CHARS, AnalysisResult, SentimentLabel
from normalizers import (
    NEUTRAL_SENTIMENT,
    as_number,
    coerce_label,
    derive_confidence,
    derive_sentiment_label,
    derive_summary,
    derive_tone,
    normalize_sentiment,
)

FALLBACK_MODEL      = "fallback"
LOCAL_MODEL         = "local"
FALLBACK_CONFIDENCE = 0.3
FALLBACK_KEYWORDS   = 5
FALLBACK_SUMMARY    = 100
FALLBACK_MIN_WORD   = 4

_WORD_RE = re.compile(r"[\w']+")


def _field(parsed: Optional[dict], *names: str) -> Any:
    """First present value among snake_case / camelCase spellings."""
    if not parsed:
        return None
    for name in names:
        if name in parsed and parsed[name] is not None:
            return parsed[name]
    return None


def _parsed_keywords(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(kw).strip() for kw in value if kw is not None and str(kw).strip()]


def build(
    parsed: Optional[dict],
    raw_upstream: Any,
    raw_model_text: str,
    original_input: str,
    model: str = FALLBACK_MODEL,
) -> AnalysisResult:
    """Assemble a canonical result from whatever the classifier gave us.

    `raw_upstream` is the untouched provider envelope.  It is accepted for
    call-site symmetry but never copied into the result.
    """
    if not isinstance(parsed, dict):
        parsed = None
    raw_model_text = raw_model_text if isinstance(raw_model_text, str) else ""
    original_input = original_input if isinstance(original_input, str) else ""

    raw_label = _field(parsed, "sentiment_label", "sentimentLabel")

    sentiment = normalize_sentiment(_field(parsed, "sentiment"), raw_label)

    reported = as_number(_field(parsed, "confidence"))
    confidence = reported if reported is not None and 0.0 <= reported <= 1.0 else derive_confidence(sentiment)

    tone = _field(parsed, "tone")
    tone = tone.strip() if isinstance(tone, str) and tone.strip() else derive_tone(sentiment)

    short_summary = derive_summary(
        _field(parsed, "short_summary", "shortSummary", "summary"),
        raw_model_text,
        original_input,
    )

    keywords = _parsed_keywords(_field(parsed, "keywords"))
    if not keywords:
        keywords = extract_keywords(short_summary or raw_model_text or original_input)
    keywords = dedupe_keywords(keywords, MAX_KEYWORDS)

    sentiment_label = coerce_label(raw_label) or derive_sentiment_label(sentiment)

    return AnalysisResult(
        sentiment=sentiment,
        sentiment_label=sentiment_label,
        confidence=round(confidence, 3),
        keywords=tuple(keywords),
        tone=tone,
        short_summary=short_summary,
        model=model,
        is_fallback=False,
    )


def _local_keywords(text: str) -> list[str]:
    words = [w.strip("'") for w in _WORD_RE.findall(text)]
    return dedupe_keywords((w for w in words if len(w) >= FALLBACK_MIN_WORD), FALLBACK_KEYWORDS)


def _classifier_free(text: str, model: str) -> AnalysisResult:
    text = (text or "").strip()
    return AnalysisResult(
        sentiment=NEUTRAL_SENTIMENT,
        sentiment_label=SentimentLabel.NEUTRAL,
        confidence=FALLBACK_CONFIDENCE,
        keywords=tuple(_local_keywords(text)),
        tone="neutral",
        short_summary=text[:min(FALLBACK_SUMMARY, MAX_SUMMARY_CHARS)],
        model=model,
        is_fallback=True,
    )


def build_local_fallback(text: str) -> AnalysisResult:
    return _classifier_free(text, FALLBACK_MODEL)


def build_neutral(text: str) -> AnalysisResult:
    return _classifier_free(text, LOCAL_MODEL)
