"""Core data models shared across the engine."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from errors import ErrorKind

MAX_KEYWORDS = 7
MAX_SUMMARY_CHARS = 220


class SentimentLabel(str, Enum):
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"


class AnalysisResult(BaseModel):
    """Canonical analysis record.  Immutable once constructed.

    Serialised with camelCase aliases on the service boundary
    (`model_dump(by_alias=True)`).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, use_enum_values=True)

    sentiment: float = Field(ge=0.0, le=1.0)
    sentiment_label: SentimentLabel = Field(alias="sentimentLabel")
    confidence: float = Field(ge=0.0, le=1.0)
    keywords: tuple[str, ...] = Field(default=(), max_length=MAX_KEYWORDS)
    tone: str
    short_summary: str = Field(default="", max_length=MAX_SUMMARY_CHARS, alias="shortSummary")
    model: str
    is_fallback: bool = Field(default=False, alias="isFallback")


@dataclass
class TranscriptEvent:
    text: str
    is_final: bool = False


@dataclass
class AnalysisFailure:
    """Failure report delivered to a session's failure stream."""
    kind: ErrorKind
    message: str
    status: Optional[int] = None
    attempts: int = 0
    text: str = ""


@dataclass(frozen=True)
class AnalysisOutcome:
    """A displayable result plus the failure that forced it, if any."""
    result: AnalysisResult
    failure: Optional[AnalysisFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(eq=False)
class PendingRequest:
    """One in-flight transcript submission."""
    text: str
    seq: int
    submitted_at: float = field(default_factory=time.monotonic)
    attempts: int = 0
    cancelled: bool = False
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    def cancel(self) -> None:
        self.cancelled = True
        if self.task is not None and not self.task.done():
            self.task.cancel()


@dataclass(frozen=True)
class SmoothedSignal:
    current: float = 0.0
    target: float = 0.0
    pulse_energy: float = 0.0


@dataclass(frozen=True)
class SmootherFrame:
    current: float
    pulse_energy: float
