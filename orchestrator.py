"""
orchestrator.py — Sentiment Aura Engine · Request Orchestrator
==============================================================
Consumer-facing core.  One instance per session.

    submit(text)
      ├─ blank / same as last submission → None (no call)
      ├─ shorter than min_chars          → neutral result, no call
      └─ classifier → extract_text → parse → build
             └─ any failure → AnalysisFailure on `failures`, local fallback result

Concurrency model
-----------------
Single asyncio loop, no locks.  The last-submitted text and the in-flight
slot are the only shared state and only this object mutates them.

  • single_flight=True  — a new submission cancels the outstanding request
                          (attempt, timeout and backoff sleep included); the
                          superseded submit() returns None.
  • single_flight=False — requests overlap, but a result older than the
                          newest published one is discarded, never merged.

Published results go to `results` in submission order.  After stop() nothing
is published and no further work starts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from analysis_builder import build, build_local_fallback, build_neutral
from classifier import ClassifierClient
from config import SessionConfig
from errors import AuraError, ClassifierError, ErrorKind
from models import AnalysisFailure, AnalysisOutcome, AnalysisResult, PendingRequest
from response_parser import extract_text, parse, structured_output

log = logging.getLogger("sentiment_aura.orchestrator")

FAILURE_BUFFER = 100


async def analyze(
    client: ClassifierClient,
    text: str,
    on_attempt: Optional[Callable[[int], None]] = None,
) -> AnalysisOutcome:
    """Classify `text` once, without dedup or sequencing.

    Always returns a displayable result.  When the classifier or the builder
    failed, the outcome carries the failure and a local fallback result.
    """
    try:
        envelope = await client.classify(text, on_attempt=on_attempt)
    except ClassifierError as exc:
        return AnalysisOutcome(
            result=build_local_fallback(text),
            failure=AnalysisFailure(
                kind=ErrorKind.CLASSIFIER,
                message=exc.message,
                status=exc.status,
                attempts=exc.attempts,
                text=text,
            ),
        )
    except AuraError as exc:
        return AnalysisOutcome(
            result=build_local_fallback(text),
            failure=AnalysisFailure(kind=exc.kind, message=exc.message, status=exc.status, text=text),
        )
    except Exception as exc:
        log.error("event=classify_unexpected error=%s", exc, exc_info=True)
        return AnalysisOutcome(
            result=build_local_fallback(text),
            failure=AnalysisFailure(
                kind=ErrorKind.CLASSIFIER,
                message=f"{type(exc).__name__}: {exc}",
                text=text,
            ),
        )

    try:
        raw_text = extract_text(envelope)
        parsed = parse(raw_text)
        if parsed is None:
            parsed = structured_output(envelope)
            if parsed is None:
                log.info("event=analysis_unstructured raw_len=%d", len(raw_text))
        return AnalysisOutcome(result=build(parsed, envelope, raw_text, text, model=client.model))
    except Exception as exc:
        log.error("event=analysis_build_failed error=%s", exc, exc_info=True)
        return AnalysisOutcome(
            result=build_local_fallback(text),
            failure=AnalysisFailure(kind=ErrorKind.PARSE, message=str(exc), text=text),
        )


class RequestOrchestrator:
    def __init__(self, client: ClassifierClient, cfg: Optional[SessionConfig] = None) -> None:
        self._client = client
        self._cfg = cfg or SessionConfig()

        self.results: asyncio.Queue[AnalysisResult] = asyncio.Queue(maxsize=self._cfg.results_buffer)
        self.failures: asyncio.Queue[AnalysisFailure] = asyncio.Queue(maxsize=FAILURE_BUFFER)

        self._last_text: Optional[str] = None
        self._seq = 0
        self._published_seq = 0
        self._inflight: Optional[PendingRequest] = None
        self._pending: set[PendingRequest] = set()
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def inflight(self) -> Optional[PendingRequest]:
        return self._inflight

    # -- Public API ------------------------------------------------------------

    async def submit(self, text: str) -> Optional[AnalysisResult]:
        """Analyse one finalized transcript line.  Never raises for analysis failures."""
        if self._stopped or not isinstance(text, str):
            return None

        text = text.strip()
        if not text:
            return None
        if text == self._last_text:
            log.debug("event=submit_duplicate_dropped text_len=%d", len(text))
            return None
        self._last_text = text

        self._seq += 1
        request = PendingRequest(text=text, seq=self._seq)

        if len(text) < self._cfg.min_chars:
            log.info("event=submit_too_short seq=%d text_len=%d", request.seq, len(text))
            result = build_neutral(text)
            self._publish(request, result)
            return result

        if self._cfg.single_flight and self._inflight is not None:
            log.info(
                "event=submit_supersedes seq=%d superseded_seq=%d",
                request.seq, self._inflight.seq,
            )
            self._inflight.cancel()

        self._inflight = request
        self._pending.add(request)
        try:
            request.task = asyncio.create_task(self._analyze(request), name=f"analyze_{request.seq}")
            result = await request.task
        except asyncio.CancelledError:
            if request.cancelled:
                log.debug("event=submit_cancelled seq=%d", request.seq)
                return None
            request.cancel()
            raise
        finally:
            self._pending.discard(request)
            if self._inflight is request:
                self._inflight = None

        if request.cancelled or self._stopped:
            return None
        if not self._publish(request, result):
            return None
        return result

    def stop(self) -> None:
        """Cancel all outstanding work; no result or failure is published afterwards."""
        if self._stopped:
            return
        self._stopped = True
        for request in list(self._pending):
            request.cancel()
        log.info("event=orchestrator_stopped cancelled=%d", len(self._pending))

    def reset(self) -> None:
        """Forget the dedup value, e.g. when a new recording starts."""
        self._last_text = None

    def report(self, failure: AnalysisFailure) -> None:
        """Surface a failure to the session's failure stream."""
        if self._stopped:
            return
        try:
            self.failures.put_nowait(failure)
        except asyncio.QueueFull:
            log.warning("event=failure_dropped kind=%s reason=buffer_full", failure.kind.value)

    # -- Internals -------------------------------------------------------------

    async def _analyze(self, request: PendingRequest) -> AnalysisResult:
        def _count(attempt: int) -> None:
            request.attempts = attempt

        outcome = await analyze(self._client, request.text, on_attempt=_count)
        if outcome.failure is not None:
            log.warning(
                "event=analysis_fallback seq=%d kind=%s attempts=%d",
                request.seq, outcome.failure.kind.value, outcome.failure.attempts,
            )
            self.report(outcome.failure)
        return outcome.result

    def _publish(self, request: PendingRequest, result: AnalysisResult) -> bool:
        if self._stopped:
            return False
        if request.seq < self._published_seq:
            log.info(
                "event=stale_result_dropped seq=%d published_seq=%d",
                request.seq, self._published_seq,
            )
            return False
        self._published_seq = request.seq
        if self.results.full():
            # visual state is last-wins; the oldest unread result is the one to lose
            self.results.get_nowait()
            self.results.task_done()
            log.warning("event=result_dropped reason=buffer_full")
        self.results.put_nowait(result)
        log.info(
            "event=result_published seq=%d sentiment=%.3f label=%s fallback=%s",
            request.seq, result.sentiment, result.sentiment_label, result.is_fallback,
        )
        return True
