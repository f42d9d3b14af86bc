"""Field normalizers: map raw or partial classifier fields onto the canonical shape.

None of these raise; each always returns an in-range value.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from models import MAX_SUMMARY_CHARS, SentimentLabel

SENTIMENT_THRESHOLDS = {"negative": 0.4, "positive": 0.6}
SENTIMENT_MAP = {"positive": 0.8, "neutral": 0.5, "negative": 0.2}
NEUTRAL_SENTIMENT = 0.5


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def as_number(value: Any) -> Optional[float]:
    """Finite float from a number or numeric string, else None.  bool is not a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_sentiment(value: Any, label: Any = None) -> float:
    number = as_number(value)
    if number is not None:
        # percentage format, e.g. 85 -> 0.85
        if 1 < number <= 100:
            number /= 100
        return clamp(number, 0.0, 1.0)

    if label:
        return SENTIMENT_MAP.get(str(label).strip().lower(), NEUTRAL_SENTIMENT)

    return NEUTRAL_SENTIMENT


def derive_confidence(sentiment: float) -> float:
    return clamp(0.4 + abs(sentiment - 0.5) * 1.1, 0.5, 0.99)


def derive_tone(sentiment: float) -> str:
    if sentiment >= 0.7:
        return "positive"
    if sentiment <= 0.3:
        return "negative"
    return "neutral"


def derive_sentiment_label(sentiment: float) -> SentimentLabel:
    # 0.6 exactly stays neutral
    if sentiment < SENTIMENT_THRESHOLDS["negative"]:
        return SentimentLabel.NEGATIVE
    if sentiment > SENTIMENT_THRESHOLDS["positive"]:
        return SentimentLabel.POSITIVE
    return SentimentLabel.NEUTRAL


def coerce_label(value: Any) -> Optional[SentimentLabel]:
    if not isinstance(value, str):
        return None
    try:
        return SentimentLabel(value.strip().lower())
    except ValueError:
        return None


def derive_summary(parsed_summary: Any, raw_model_text: str, original_input: str) -> str:
    if parsed_summary is not None and str(parsed_summary).strip():
        return str(parsed_summary)[:MAX_SUMMARY_CHARS]

    raw_model_text = raw_model_text or ""
    original_input = original_input or ""
    source = raw_model_text if raw_model_text.strip() else original_input
    lines = [line.strip() for line in source.splitlines() if line.strip()]

    if not lines:
        return original_input[:MAX_SUMMARY_CHARS]
    return " ".join(lines[:2])[:MAX_SUMMARY_CHARS]
