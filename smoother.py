"""
smoother.py — Sentiment Aura Engine · Signal Smoother
=====================================================
Turns bursty per-utterance sentiment into a smoothly drifting baseline plus
a decaying "pulse" on every new result.

`step()` is a pure function of (state, delta_ms).  Easing and decay are
given per 60 Hz reference frame and rescaled by elapsed time, so any driving
loop (render callback, fixed tick, test harness) gets the same curve.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from config import SmootherConfig
from models import AnalysisResult, SmoothedSignal, SmootherFrame

log = logging.getLogger("sentiment_aura.smoother")

REFERENCE_FRAME_MS = 1000.0 / 60.0


def _per_frame(factor: float, delta_ms: float) -> float:
    return factor ** (max(0.0, delta_ms) / REFERENCE_FRAME_MS)


def step(state: SmoothedSignal, delta_ms: float, cfg: SmootherConfig = SmootherConfig()) -> SmoothedSignal:
    """Advance the signal by `delta_ms`."""
    keep = _per_frame(1.0 - cfg.easing, delta_ms)
    current = state.current + (state.target - state.current) * (1.0 - keep)
    if abs(state.target - current) < cfg.snap_epsilon:
        current = state.target

    pulse = state.pulse_energy * _per_frame(cfg.pulse_decay, delta_ms)
    return SmoothedSignal(current=current, target=state.target, pulse_energy=max(0.0, min(1.0, pulse)))


def retarget(state: SmoothedSignal, target: float, pulse: bool = True) -> SmoothedSignal:
    target = max(0.0, min(1.0, float(target)))
    return replace(state, target=target, pulse_energy=1.0 if pulse else state.pulse_energy)


class SignalSmoother:
    """Per-session stateful wrapper around `step`/`retarget`."""

    def __init__(self, cfg: Optional[SmootherConfig] = None, initial: float = 0.0) -> None:
        self._cfg = cfg or SmootherConfig()
        self._state = SmoothedSignal(current=initial, target=initial, pulse_energy=0.0)

    @property
    def state(self) -> SmoothedSignal:
        return self._state

    def set_target(self, sentiment: float, pulse: bool = True) -> None:
        self._state = retarget(self._state, sentiment, pulse=pulse)
        log.debug("event=smoother_target target=%.3f pulse=%s", self._state.target, pulse)

    def apply(self, result: AnalysisResult) -> None:
        """A new analysis result: retarget and fire the pulse."""
        self.set_target(result.sentiment, pulse=True)

    def tick(self, delta_ms: float) -> SmootherFrame:
        self._state = step(self._state, delta_ms, self._cfg)
        return SmootherFrame(current=self._state.current, pulse_energy=self._state.pulse_energy)


# ---------------------------------------------------------------------------
# Aura palette for render consumers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Aura:
    label: str
    color: str
    meaning: str
    text_color: str


# (upper bound inclusive, aura)
_AURA_BUCKETS: tuple[tuple[float, Aura], ...] = (
    (0.01, Aura("White", "#ffffff", "Calm / no strong energy", "#000")),
    (0.12, Aura("Red", "hsl(0,75%,35%)", "Energetic, passionate, fiery", "#fff")),
    (0.24, Aura("Orange", "hsl(25,100%,50%)", "Creative, optimistic, action-oriented", "#000")),
    (0.38, Aura("Yellow", "hsl(50,100%,60%)", "Joyful, active, optimistic", "#000")),
    (0.53, Aura("Green", "hsl(120,80%,35%)", "Loving, compassionate, nurturing", "#fff")),
    (0.66, Aura("Blue", "hsl(200,80%,40%)", "Calm, perceptive, peaceful", "#fff")),
    (0.76, Aura("Indigo", "hsl(230,90%,35%)", "Sensitive, intuitive, empathic", "#fff")),
    (0.86, Aura("Purple/Pink", "hsl(290,80%,55%)", "Intuitive, loving, affectionate", "#fff")),
    (0.96, Aura("Pink/Light", "hsl(330,60%,88%)", "Near-pure, loving, radiant", "#000")),
)
_TOP_AURA = Aura("White / Rainbow", "#ffffff", "Pure, spiritually elevated / rainbow shimmer", "#000")


def aura_for_sentiment(value: float) -> Aura:
    try:
        s = max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        s = 0.0
    for upper, aura in _AURA_BUCKETS:
        if s <= upper:
            return aura
    return _TOP_AURA
