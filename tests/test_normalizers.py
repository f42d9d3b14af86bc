"""Tests for the field normalizers."""

from __future__ import annotations

import pytest

from models import SentimentLabel
from normalizers import (
    derive_confidence,
    derive_sentiment_label,
    derive_summary,
    derive_tone,
    normalize_sentiment,
)


# ---------------------------------------------------------------
# normalize_sentiment
# ---------------------------------------------------------------

def test_percentage_heuristic() -> None:
    assert normalize_sentiment(85, None) == pytest.approx(0.85)
    assert normalize_sentiment(0.85, None) == pytest.approx(0.85)
    assert normalize_sentiment(100, None) == 1.0


def test_out_of_range_values_clamp() -> None:
    assert normalize_sentiment(150, None) == 1.0
    assert normalize_sentiment(-3, None) == 0.0
    assert normalize_sentiment(1, None) == 1.0


def test_label_mapping_when_value_missing() -> None:
    assert normalize_sentiment(None, "Positive") == 0.8
    assert normalize_sentiment(None, "neutral") == 0.5
    assert normalize_sentiment("n/a", "NEGATIVE") == 0.2
    assert normalize_sentiment(None, "ecstatic") == 0.5
    assert normalize_sentiment(None, None) == 0.5


def test_numeric_strings_and_bools() -> None:
    assert normalize_sentiment("0.7", None) == pytest.approx(0.7)
    assert normalize_sentiment(True, "negative") == 0.2
    assert normalize_sentiment(float("nan"), None) == 0.5


# ---------------------------------------------------------------
# derived fields
# ---------------------------------------------------------------

def test_confidence_grows_with_distance_from_neutral() -> None:
    assert derive_confidence(0.5) == 0.5
    assert derive_confidence(0.2) == pytest.approx(0.73)
    assert derive_confidence(1.0) == pytest.approx(0.95)
    assert derive_confidence(0.0) == pytest.approx(0.95)
    assert derive_confidence(5.0) == 0.99


def test_tone_thresholds() -> None:
    assert derive_tone(0.7) == "positive"
    assert derive_tone(0.69) == "neutral"
    assert derive_tone(0.3) == "negative"
    assert derive_tone(0.31) == "neutral"


def test_label_boundaries_are_asymmetric() -> None:
    assert derive_sentiment_label(0.39) == SentimentLabel.NEGATIVE
    assert derive_sentiment_label(0.4) == SentimentLabel.NEUTRAL
    assert derive_sentiment_label(0.4000001) == SentimentLabel.NEUTRAL
    assert derive_sentiment_label(0.6) == SentimentLabel.NEUTRAL
    assert derive_sentiment_label(0.6000001) == SentimentLabel.POSITIVE


# ---------------------------------------------------------------
# derive_summary
# ---------------------------------------------------------------

def test_summary_uses_parsed_value_verbatim() -> None:
    assert derive_summary("Speaker is thrilled.", "raw", "input") == "Speaker is thrilled."


def test_summary_takes_first_two_non_blank_lines() -> None:
    raw = "\n  First line. \n\nSecond line.\nThird line."
    assert derive_summary(None, raw, "input") == "First line. Second line."


def test_summary_falls_back_to_input_and_truncates() -> None:
    assert derive_summary("   ", "", "just the input") == "just the input"
    long_input = "word " * 100
    assert len(derive_summary(None, "  ", long_input)) == 220
    assert derive_summary(None, "", "") == ""
