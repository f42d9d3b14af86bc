"""Tests for model-output recovery."""

from __future__ import annotations

from response_parser import extract_text, parse, structured_output


# ---------------------------------------------------------------
# parse
# ---------------------------------------------------------------

def test_parses_object_wrapped_in_prose() -> None:
    raw = 'Here you go:\n{"sentiment": 0.9, "tone": "joyful"}\nHope that helps!'
    assert parse(raw) == {"sentiment": 0.9, "tone": "joyful"}


def test_repairs_single_quotes_bare_keys_and_trailing_commas() -> None:
    assert parse("Sure! {sentiment: 0.2, 'tone':'sad',}") == {"sentiment": 0.2, "tone": "sad"}
    assert parse("{'keywords': ['rain', 'grey',],}") == {"keywords": ["rain", "grey"]}


def test_returns_none_without_a_brace_span() -> None:
    assert parse("no json here") is None
    assert parse("} backwards {") is None
    assert parse("") is None
    assert parse(None) is None


def test_returns_none_when_repair_fails() -> None:
    assert parse("{this is: not [json at all}") is None


def test_brace_span_is_taken_from_surrounding_json() -> None:
    assert parse("{}") == {}
    assert parse('["a", {"b": 1}]') == {"b": 1}


def test_parse_is_pure() -> None:
    raw = "Sure! {sentiment: 0.2, 'tone':'sad',}"
    assert parse(raw) == parse(raw)


# ---------------------------------------------------------------
# extract_text
# ---------------------------------------------------------------

def test_gemini_candidates_shape() -> None:
    envelope = {"candidates": [{"content": {"parts": [{"text": "{\"a\": 1}"}]}}]}
    assert extract_text(envelope) == '{"a": 1}'


def test_chat_completion_shape() -> None:
    envelope = {"choices": [{"index": 0, "message": {"role": "assistant", "content": "hello"}}]}
    assert extract_text(envelope) == "hello"


def test_response_shapes() -> None:
    assert extract_text({"response": "plain answer"}) == "plain answer"
    assert extract_text({"response": {"text": "nested"}}) == "nested"
    assert extract_text({"output": [{"content": [{"text": "listed"}]}]}) == "listed"


def test_bare_string_and_unknown_shapes() -> None:
    assert extract_text("bare") == "bare"
    assert extract_text({"weird": 1}) == '{"weird": 1}'
    assert extract_text({"candidates": [{"finishReason": "SAFETY"}]}) == '{"finishReason": "SAFETY"}'
    assert extract_text(None) == '""'


def test_candidates_win_over_response() -> None:
    envelope = {
        "response": "second",
        "candidates": [{"content": {"parts": [{"text": "first"}]}}],
    }
    assert extract_text(envelope) == "first"


def test_structured_output_lookup() -> None:
    assert structured_output({"structuredOutput": {"sentiment": 0.3}}) == {"sentiment": 0.3}
    assert structured_output({"structured_output": {"tone": "calm"}}) == {"tone": "calm"}
    assert structured_output({"structured_output": "nope"}) is None
    assert structured_output("text") is None


def test_repair_leaves_string_values_alone() -> None:
    raw = "{'sentiment': 0.2, 'short_summary': 'mood, note: fine',}"
    assert parse(raw) == {"sentiment": 0.2, "short_summary": "mood, note: fine"}
    assert parse('{tone: "calm", summary: "a, b: c"}') == {"tone": "calm", "summary": "a, b: c"}
