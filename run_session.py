"""
run_session.py — Sentiment Aura Engine · Console Session Runner
===============================================================
Feeds transcript lines (file or stdin, one finalized line per row) through a
live TranscriptSession and prints JSON lines:

    {"type": "analysis", ...}   one per published result
    {"type": "error", ...}      one per failure
    {"type": "frame", ...}      smoothed signal, `--fps` per second

Usage
-----
    python run_session.py --lines transcript.txt --interval 1.5 --fps 10
    echo "I am thrilled about this" | python run_session.py
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Iterable, TextIO

from classifier import ClassifierClient
from config import AuraSettings, configure_logging
from errors import ConfigError
from models import AnalysisResult, TranscriptEvent
from orchestrator import RequestOrchestrator
from server import failure_payload, result_payload
from session import TranscriptSession
from smoother import SignalSmoother, aura_for_sentiment


def _emit(out: TextIO, payload: dict) -> None:
    out.write(json.dumps(payload) + "\n")
    out.flush()


async def _print_results(session: TranscriptSession, out: TextIO) -> None:
    async def _print(result: AnalysisResult) -> None:
        _emit(out, {"type": "analysis", "data": result_payload(result), "keywords": session.keywords})

    await session.follow_results(_print)


async def _print_failures(session: TranscriptSession, out: TextIO) -> None:
    while True:
        failure = await session.failures.get()
        _emit(out, {"type": "error", "error": failure_payload(failure)})


async def _animate(session: TranscriptSession, seconds: float, fps: float, out: TextIO) -> None:
    if fps <= 0:
        await asyncio.sleep(seconds)
        return
    delta_ms = 1000.0 / fps
    for _ in range(max(1, int(seconds * fps))):
        await asyncio.sleep(delta_ms / 1000.0)
        frame = session.smoother.tick(delta_ms)
        _emit(out, {
            "type": "frame",
            "current": round(frame.current, 4),
            "pulseEnergy": round(frame.pulse_energy, 4),
            "aura": aura_for_sentiment(frame.current).label,
        })


async def run(
    lines: Iterable[str],
    settings: AuraSettings,
    interval: float = 1.0,
    fps: float = 0.0,
    out: TextIO = sys.stdout,
    client: ClassifierClient | None = None,
) -> TranscriptSession:
    client = client or ClassifierClient(settings.classifier)
    session = TranscriptSession(
        RequestOrchestrator(client, settings.session),
        SignalSmoother(settings.smoother),
    )
    session.start()
    printers = [
        asyncio.create_task(_print_results(session, out)),
        asyncio.create_task(_print_failures(session, out)),
    ]
    try:
        for line in lines:
            await session.feed(TranscriptEvent(text=line.rstrip("\n"), is_final=True))
            await _animate(session, interval, fps, out)
        await session.close_input()
        await session.results.join()
        await _animate(session, interval, fps, out)
    finally:
        await session.stop()
        for task in printers:
            task.cancel()
        await asyncio.gather(*printers, return_exceptions=True)
        await client.aclose()
    return session


def main() -> None:
    ap = argparse.ArgumentParser(description="Run transcript lines through a live sentiment session")
    ap.add_argument("--lines", type=str, default="", help="Transcript file (default: stdin)")
    ap.add_argument("--interval", type=float, default=1.0, help="Seconds between finalized lines")
    ap.add_argument("--fps", type=float, default=0.0, help="Smoothed frames per second to print (0 = off)")
    ap.add_argument("--config", type=str, default="", help="Partial JSON settings file overlaid on the environment")
    args = ap.parse_args()

    try:
        settings = AuraSettings.from_env()
        if args.config:
            settings = AuraSettings.load(args.config, base=settings)
        configure_logging(settings.debug)
        settings.require_api_key()
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc

    if args.lines:
        with open(args.lines, "r", encoding="utf-8") as f:
            lines = f.readlines()
    else:
        lines = sys.stdin.readlines()

    try:
        asyncio.run(run(lines, settings, interval=args.interval, fps=args.fps))
    except KeyboardInterrupt:
        print("\nShutdown requested", file=sys.stderr)


if __name__ == "__main__":
    main()
