"""HTTP and WebSocket tests against the FastAPI app with a scripted classifier."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from config import AuraSettings, ClassifierConfig, ServerConfig
from errors import TransportError, ValidationError
from helpers import ScriptedTransport, json_envelope, make_client
from server import create_app, validate_text


def _client(transport: ScriptedTransport, api_key: str = "test-key", **server) -> TestClient:
    settings = AuraSettings(
        classifier=ClassifierConfig(api_key=api_key, model="test-model"),
        server=ServerConfig(**server),
    )
    return TestClient(create_app(settings, client=make_client(transport)))


# ---------------------------------------------------------------
# POST /process_text
# ---------------------------------------------------------------

def test_process_text_returns_analysis_and_metadata() -> None:
    transport = ScriptedTransport(json_envelope(
        sentiment=0.9, sentiment_label="positive", confidence=0.95,
        keywords=["thrilled"], tone="joyful", short_summary="Speaker is thrilled.",
    ))
    response = _client(transport).post("/process_text", json={"text": "I am thrilled about this"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {
        "sentiment": 0.9,
        "sentimentLabel": "positive",
        "confidence": 0.95,
        "keywords": ["thrilled"],
        "tone": "joyful",
        "shortSummary": "Speaker is thrilled.",
        "model": "test-model",
        "isFallback": False,
    }
    assert body["metadata"]["model"] == "test-model"
    assert body["metadata"]["fallback"] is False
    assert "error" not in body["metadata"]
    assert body["metadata"]["processingTimeMs"] >= 0


def test_upstream_failure_still_answers_with_fallback() -> None:
    transport = ScriptedTransport(TransportError("forbidden", status=403))
    response = _client(transport).post("/process_text", json={"text": "I am thrilled about this"})

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["isFallback"] is True
    assert body["data"]["keywords"] == ["thrilled", "about", "this"]
    assert body["metadata"]["fallback"] is True
    assert body["metadata"]["error"]["type"] == "ClassifierError"
    assert body["metadata"]["error"]["statusCode"] == 403


def test_short_text_is_answered_locally() -> None:
    transport = ScriptedTransport(json_envelope(sentiment=0.9))
    response = _client(transport).post("/process_text", json={"text": "ok"})

    assert response.status_code == 200
    assert response.json()["data"]["model"] == "local"
    assert transport.calls == 0


@pytest.mark.parametrize("payload", [{}, {"text": ""}, {"text": "   "}, {"text": 42}])
def test_invalid_text_is_rejected_with_field(payload) -> None:
    transport = ScriptedTransport(json_envelope())
    response = _client(transport).post("/process_text", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["type"] == "ValidationError"
    assert body["error"]["field"] == "text"
    assert transport.calls == 0


def test_oversized_text_is_rejected() -> None:
    transport = ScriptedTransport(json_envelope())
    response = _client(transport, max_text_chars=10).post("/process_text", json={"text": "x" * 11})
    assert response.status_code == 400


def test_non_json_body_is_rejected() -> None:
    response = _client(ScriptedTransport(json_envelope())).post(
        "/process_text", content=b"not json", headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["field"] == "body"


def test_validate_text_trims() -> None:
    assert validate_text({"text": "  hi there "}, 100) == "hi there"
    with pytest.raises(ValidationError):
        validate_text(["text"], 100)


# ---------------------------------------------------------------
# GET endpoints
# ---------------------------------------------------------------

def test_health_ok_with_credentials() -> None:
    response = _client(ScriptedTransport(json_envelope())).get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["model"] == "test-model"


def test_health_unconfigured_without_credentials() -> None:
    response = _client(ScriptedTransport(json_envelope()), api_key="").get("/api/health")
    assert response.status_code == 503
    assert response.json()["status"] == "unconfigured"


def test_config_is_redacted() -> None:
    response = _client(ScriptedTransport(json_envelope())).get("/config")
    assert response.status_code == 200
    assert response.json()["classifier"]["api_key"] == "***"
    assert response.json()["server"]["port"] == 3001


# ---------------------------------------------------------------
# WS /ws/session
# ---------------------------------------------------------------

def test_ws_session_streams_analysis() -> None:
    transport = ScriptedTransport(json_envelope(sentiment=0.8, keywords=["sunny", "day"]))
    client = _client(transport)

    with client.websocket_connect("/ws/session") as ws:
        ws.send_json({"text": "what a sunny", "is_final": False})
        ws.send_json({"text": "what a sunny day", "is_final": True})
        message = ws.receive_json()

    assert message["type"] == "analysis"
    assert message["data"]["sentiment"] == 0.8
    assert message["keywords"] == ["sunny", "day"]
    assert transport.calls == 1


def test_ws_session_reports_bad_messages() -> None:
    client = _client(ScriptedTransport(json_envelope()))

    with client.websocket_connect("/ws/session") as ws:
        ws.send_json({"nope": True})
        message = ws.receive_json()

    assert message["type"] == "error"
    assert message["error"]["field"] == "text"


def test_ws_session_reports_classifier_fallback() -> None:
    transport = ScriptedTransport(TransportError("bad request", status=400))
    client = _client(transport)

    with client.websocket_connect("/ws/session") as ws:
        ws.send_json({"text": "this will fail upstream", "is_final": True})
        first, second = ws.receive_json(), ws.receive_json()

    by_type = {first["type"]: first, second["type"]: second}
    assert by_type["analysis"]["data"]["isFallback"] is True
    assert by_type["error"]["error"]["type"] == "ClassifierError"
    assert by_type["error"]["error"]["statusCode"] == 400


def test_ws_session_survives_non_json_frames() -> None:
    transport = ScriptedTransport(json_envelope(sentiment=0.7))
    client = _client(transport)

    with client.websocket_connect("/ws/session") as ws:
        ws.send_text("not json")
        error = ws.receive_json()
        ws.send_json({"text": "still listening here", "is_final": True})
        analysis = ws.receive_json()

    assert error["type"] == "error"
    assert error["error"]["type"] == "ValidationError"
    assert analysis["type"] == "analysis"
    assert analysis["data"]["sentiment"] == 0.7
