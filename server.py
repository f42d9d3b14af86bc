"""
server.py — Sentiment Aura Engine · FastAPI Service
===================================================
HTTP/WebSocket boundary in front of the analysis core.

Endpoints
---------
  POST /process_text     {text} → {success, data: AnalysisResult, metadata}
  GET  /api/health       200 when classifier credentials are configured, else 503
  GET  /config           Effective configuration (API key redacted)
  WS   /ws/session       Live transcript session: send {text, is_final},
                         receive analysis / error / frame messages

Concurrency model
-----------------
One shared ClassifierClient (one HTTP connection pool) per process.  Every
WebSocket client gets its own RequestOrchestrator + TranscriptSession, so
dedup state and the single-flight slot are never shared between clients.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from analysis_builder import build_neutral
from classifier import ClassifierClient
from config import AuraSettings, configure_logging
from errors import ERROR_MESSAGES, AuraError, ConfigError, ErrorKind, ValidationError
from models import AnalysisFailure, AnalysisResult, TranscriptEvent
from orchestrator import RequestOrchestrator, analyze
from session import TranscriptSession
from smoother import SignalSmoother, aura_for_sentiment

log = logging.getLogger("sentiment_aura.server")


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def validate_text(body: Any, max_chars: int) -> str:
    """Return the trimmed `text` field or raise ValidationError naming it."""
    if not isinstance(body, dict) or "text" not in body:
        raise ValidationError("text", "Missing 'text' in request body")
    text = body["text"]
    if not isinstance(text, str):
        raise ValidationError("text", "'text' must be a string")
    if not text.strip():
        raise ValidationError("text", "'text' must not be empty")
    if len(text) > max_chars:
        raise ValidationError("text", f"'text' exceeds {max_chars} characters")
    return text.strip()


def result_payload(result: AnalysisResult) -> dict:
    return result.model_dump(mode="json", by_alias=True)


def failure_payload(failure: AnalysisFailure) -> dict:
    return {
        "type": failure.kind.value,
        "message": ERROR_MESSAGES.get(failure.kind, failure.message),
        "detail": failure.message,
        "statusCode": failure.status,
        "attempts": failure.attempts,
    }


def _error_response(status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Optional[AuraSettings] = None,
    client: Optional[ClassifierClient] = None,
) -> FastAPI:
    settings = settings or AuraSettings.from_env()
    client = client or ClassifierClient(settings.classifier)

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        log.info(
            "event=server_start provider=%s model=%s credentials=%s",
            settings.classifier.provider, client.model, settings.has_credentials,
        )
        yield
        await client.aclose()
        log.info("event=server_stopped")

    app = FastAPI(
        title="Sentiment Aura Engine",
        version="1.0.0",
        description="Transcript sentiment analysis with resilient upstream orchestration",
        lifespan=_lifespan,
    )
    app.state.settings = settings
    app.state.client = client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.server.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuraError)
    async def _aura_error(request: Request, exc: AuraError) -> JSONResponse:
        log.warning("event=request_rejected path=%s kind=%s error=%s", request.url.path, exc.kind.value, exc)
        return _error_response(exc.status or 500, exc.to_dict())

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        log.error("event=request_failed path=%s error=%s", request.url.path, exc, exc_info=True)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"message": ERROR_MESSAGES[ErrorKind.INTERNAL], "type": ErrorKind.INTERNAL.value, "statusCode": 500},
        )

    # -- Endpoints -------------------------------------------------------------

    @app.post("/process_text")
    async def process_text(request: Request) -> JSONResponse:
        """Analyse one text.  Upstream failure still answers 200 with fallback data."""
        started = time.perf_counter()
        try:
            body = await request.json()
        except ValueError as exc:
            raise ValidationError("body", "Request body must be JSON") from exc

        text = validate_text(body, settings.server.max_text_chars)
        log.info("event=process_text text_len=%d", len(text))

        if len(text) < settings.session.min_chars:
            result, failure = build_neutral(text), None
        else:
            outcome = await analyze(client, text)
            result, failure = outcome.result, outcome.failure

        metadata: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "processingTimeMs": round((time.perf_counter() - started) * 1000, 1),
            "model": result.model,
            "fallback": result.is_fallback,
        }
        if failure is not None:
            log.warning("event=process_text_fallback kind=%s error=%s", failure.kind.value, failure.message)
            metadata["error"] = failure_payload(failure)

        return JSONResponse({"success": True, "data": result_payload(result), "metadata": metadata})

    @app.get("/api/health")
    async def health() -> JSONResponse:
        """Readiness check."""
        if not settings.has_credentials:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unconfigured", "message": ERROR_MESSAGES[ErrorKind.CONFIG]},
            )
        return JSONResponse({
            "status": "ok",
            "provider": settings.classifier.provider,
            "model": client.model,
        })

    @app.get("/config")
    async def get_config() -> JSONResponse:
        return JSONResponse(settings.redacted())

    @app.websocket("/ws/session")
    async def ws_session(ws: WebSocket, fps: float = 0.0) -> None:
        """
        Live transcript session.  Client sends:
            {"text": "...", "is_final": true|false}
        Server sends:
            {"type": "analysis", "data": AnalysisResult, "keywords": [...]}
            {"type": "error",    "error": {...}}
            {"type": "frame",    "current": 0.62, "pulseEnergy": 0.4, "aura": {...}}   # when fps > 0
        """
        await ws.accept()
        orchestrator = RequestOrchestrator(client, settings.session)
        session = TranscriptSession(orchestrator, SignalSmoother(settings.smoother))
        session.start()
        log.info("event=ws_session_connected remote=%s fps=%.1f", ws.client, fps)

        async def _send_analysis(result: AnalysisResult) -> None:
            await ws.send_json({
                "type": "analysis",
                "data": result_payload(result),
                "keywords": list(session.keywords),
            })

        async def _forward_failures() -> None:
            while True:
                failure = await session.failures.get()
                await ws.send_json({"type": "error", "error": failure_payload(failure)})

        async def _frames() -> None:
            interval = 1.0 / fps
            last = time.perf_counter()
            while True:
                await asyncio.sleep(interval)
                now = time.perf_counter()
                frame = session.smoother.tick((now - last) * 1000.0)
                last = now
                aura = aura_for_sentiment(frame.current)
                await ws.send_json({
                    "type": "frame",
                    "current": round(frame.current, 4),
                    "pulseEnergy": round(frame.pulse_energy, 4),
                    "aura": {"label": aura.label, "color": aura.color, "meaning": aura.meaning},
                })

        forwarders = [
            asyncio.create_task(session.follow_results(_send_analysis), name="ws_results"),
            asyncio.create_task(_forward_failures(), name="ws_failures"),
        ]
        if fps > 0:
            forwarders.append(asyncio.create_task(_frames(), name="ws_frames"))

        try:
            while True:
                raw = await ws.receive_text()
                try:
                    message = json.loads(raw)
                except ValueError:
                    message = None
                if not isinstance(message, dict) or not isinstance(message.get("text"), str):
                    await ws.send_json({
                        "type": "error",
                        "error": ValidationError("text", "Expected {text, is_final}").to_dict(),
                    })
                    continue
                await session.feed(TranscriptEvent(
                    text=message["text"],
                    is_final=bool(message.get("is_final", False)),
                ))
        except WebSocketDisconnect:
            pass
        finally:
            await session.stop()
            for task in forwarders:
                task.cancel()
            await asyncio.gather(*forwarders, return_exceptions=True)
            log.info("event=ws_session_disconnected remote=%s lines=%d", ws.client, len(session.lines))

    return app


def main() -> None:
    try:
        settings = AuraSettings.from_env()
        configure_logging(settings.debug)
        settings.require_api_key()
    except ConfigError as exc:
        configure_logging()
        log.error("event=startup_refused error=%s", exc)
        sys.exit(1)

    app = create_app(settings)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_level="info")


if __name__ == "__main__":
    main()
