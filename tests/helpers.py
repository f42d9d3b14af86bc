"""Fakes shared by the test modules."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

from classifier import ClassifierClient
from config import ClassifierConfig


class _Hang:
    pass


HANG = _Hang()


@dataclass
class Gate:
    """Block until `event` is set, then answer `envelope`."""
    event: asyncio.Event
    envelope: Any


class ScriptedTransport:
    """Plays back one step per attempt; the last step repeats.

    A step is an envelope to return, an exception to raise, HANG to never
    answer, or a Gate to answer once released.
    """

    model = "test-model"

    def __init__(self, *steps: Any) -> None:
        self.steps = list(steps)
        self.prompts: list[str] = []
        self.closed = False

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def send(self, prompt: str) -> Any:
        self.prompts.append(prompt)
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, BaseException):
            raise step
        if step is HANG:
            await asyncio.Event().wait()
        if isinstance(step, Gate):
            await step.event.wait()
            return step.envelope
        return step

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class SleepRecorder:
    delays: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def gemini_envelope(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def json_envelope(**fields: Any) -> dict:
    return gemini_envelope(json.dumps(fields))


def make_client(transport: ScriptedTransport, sleep: SleepRecorder | None = None, **cfg: Any) -> ClassifierClient:
    config = ClassifierConfig(api_key="test-key", **cfg)
    return ClassifierClient(config, transport=transport, sleep=sleep or SleepRecorder())
