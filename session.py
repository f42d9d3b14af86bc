"""State-machine based transcript session.

Consumes `{text, is_final}` events from `events`, buffers interim text, and
forwards finalized lines to the orchestrator in arrival order.  Overlap is
resolved by the orchestrator's single-flight policy.  Published results
update the accumulated keyword set and the smoother.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from errors import ErrorKind
from keywords import dedupe_keywords
from models import AnalysisFailure, AnalysisResult, TranscriptEvent
from orchestrator import RequestOrchestrator
from smoother import SignalSmoother

log = logging.getLogger("sentiment_aura.session")

MAX_SESSION_KEYWORDS = 50

ResultHook = Callable[[AnalysisResult], Awaitable[None]]


class SessionState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    STOPPED = "STOPPED"


class TranscriptSession:
    def __init__(
        self,
        orchestrator: RequestOrchestrator,
        smoother: Optional[SignalSmoother] = None,
        event_buffer: int = 256,
    ) -> None:
        self.orchestrator = orchestrator
        self.smoother = smoother or SignalSmoother()
        self.events: asyncio.Queue[Optional[TranscriptEvent]] = asyncio.Queue(maxsize=event_buffer)

        self.state = SessionState.IDLE
        self.partial = ""
        self.lines: list[str] = []
        self.keywords: list[str] = []
        self.latest: Optional[AnalysisResult] = None

        self._lines_task: Optional[asyncio.Task] = None

    @property
    def results(self) -> "asyncio.Queue[AnalysisResult]":
        return self.orchestrator.results

    @property
    def failures(self) -> "asyncio.Queue[AnalysisFailure]":
        return self.orchestrator.failures

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        if self.state != SessionState.IDLE:
            return
        self.state = SessionState.LISTENING
        self._lines_task = asyncio.create_task(self._run_lines(), name="session_lines")
        log.info("event=session_started")

    async def feed(self, event: TranscriptEvent) -> None:
        if self.state != SessionState.LISTENING:
            return
        await self.events.put(event)

    async def close_input(self) -> None:
        """End of the transcript stream: finish queued lines, then idle the loop."""
        await self.events.put(None)
        if self._lines_task is not None:
            await self._lines_task

    async def stop(self) -> None:
        if self.state == SessionState.STOPPED:
            return
        self.state = SessionState.STOPPED
        self.orchestrator.stop()
        task = self._lines_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        log.info("event=session_stopped lines=%d keywords=%d", len(self.lines), len(self.keywords))

    def report_error(self, kind: ErrorKind, message: str) -> None:
        """Audio-capture or transport failures from external collaborators."""
        log.warning("event=session_external_error kind=%s error=%s", kind.value, message)
        self.orchestrator.report(AnalysisFailure(kind=kind, message=message))

    # -- Consumers -------------------------------------------------------------

    def apply(self, result: AnalysisResult) -> None:
        """Fold a published result into session state and the smoother."""
        self.latest = result
        self.keywords = dedupe_keywords([*self.keywords, *result.keywords], MAX_SESSION_KEYWORDS)
        self.smoother.apply(result)

    async def follow_results(self, on_result: Optional[ResultHook] = None) -> None:
        """Drain the orchestrator's result stream into `apply` until cancelled.

        `on_result` sees each result after session state and the smoother
        have taken it in.
        """
        while True:
            result = await self.results.get()
            try:
                self.apply(result)
                if on_result is not None:
                    await on_result(result)
            finally:
                self.results.task_done()

    # -- Internals -------------------------------------------------------------

    def _handle_event(self, event: TranscriptEvent) -> Optional[str]:
        text = event.text or ""
        if not event.is_final:
            self.partial = text
            return None
        self.partial = ""
        line = text.strip()
        if not line:
            return None
        self.lines.append(line)
        return line

    async def _run_lines(self) -> None:
        submits: set[asyncio.Task] = set()
        try:
            while True:
                event = await self.events.get()
                if event is None:
                    break
                line = self._handle_event(event)
                if line is None:
                    continue
                # tasks start in creation order, so submission numbers follow arrival order
                task = asyncio.create_task(self.orchestrator.submit(line))
                submits.add(task)
                task.add_done_callback(submits.discard)
                await asyncio.sleep(0)
            if submits:
                await asyncio.gather(*submits)
            log.info("event=session_input_closed lines=%d", len(self.lines))
        finally:
            for task in list(submits):
                task.cancel()
