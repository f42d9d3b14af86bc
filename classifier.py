"""
classifier.py — Sentiment Aura Engine · Upstream Classifier Client
==================================================================
Calls the external sentiment model with a per-attempt timeout and bounded
exponential-backoff retry.

Per call:
    Attempting(n) → Success
                  → Retryable (timeout, network, 5xx) → backoff → Attempting(n+1)
                  → Terminal  (4xx)                   → ClassifierError

The network attempt itself lives in a transport:
  • GeminiTransport — REST generateContent via httpx
  • GroqTransport   — chat completions via the Groq SDK
Transports return the provider's raw JSON envelope or raise TransportError.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

import groq
import httpx
from groq import AsyncGroq

from config import ClassifierConfig
from errors import ClassifierError, TransportError, is_terminal_status

log = logging.getLogger("sentiment_aura.classifier")

BACKOFF_BASE_MS = 1000
BACKOFF_MAX_MS  = 5000

PROMPT_TEMPLATE = """\
You are an analysis engine. Analyze the following text and respond ONLY with valid JSON (no explanation, no extra text).

The JSON must contain exactly these fields:
{{
  "sentiment": <number between 0 and 1>,
  "sentiment_label": <"negative" | "neutral" | "positive">,
  "confidence": <number between 0 and 1>,
  "keywords": [ array of 3-7 short keywords or key phrases ],
  "tone": <single-word emotion label, e.g. "joyful", "angry", "calm">,
  "short_summary": <one-sentence summary>
}}

Guidelines:
- sentiment: 0 = very negative, 0.5 = neutral, 1 = very positive.
- sentiment_label: map sentiment to "negative" if <0.4, "neutral" if between 0.4 and 0.6, "positive" if >0.6.
- confidence: how confident you are that the sentiment label is correct (0..1).
- keywords: choose 3-7 concise nouns/phrases that best capture the content.
- tone: a single word describing the emotional tone.
- short_summary: one short sentence capturing the gist.

Return ONLY the JSON object.

Text to analyze:
\"\"\"{text}\"\"\"
"""


def build_prompt(text: str) -> str:
    return PROMPT_TEMPLATE.format(text=text)


def backoff_ms(attempt_index: int) -> int:
    """Delay after the failed attempt with 0-based index `attempt_index`."""
    return min(BACKOFF_BASE_MS * (2 ** attempt_index), BACKOFF_MAX_MS)


class ClassifierTransport(Protocol):
    model: str

    async def send(self, prompt: str) -> Any: ...

    async def aclose(self) -> None: ...


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------

class GeminiTransport:
    """Gemini `generateContent` over REST."""

    def __init__(self, cfg: ClassifierConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self.model = cfg.model
        self._cfg = cfg
        self._client = client or httpx.AsyncClient(timeout=cfg.timeout_sec)
        self._owns_client = client is None

    @property
    def endpoint(self) -> str:
        return f"{self._cfg.base_url.rstrip('/')}/models/{self.model}:generateContent"

    async def send(self, prompt: str) -> Any:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self._cfg.temperature,
                "maxOutputTokens": self._cfg.max_output_tokens,
                "candidateCount": 1,
            },
        }
        try:
            response = await self._client.post(
                self.endpoint,
                params={"key": self._cfg.api_key},
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

        if response.status_code >= 400:
            raise TransportError(
                f"upstream status {response.status_code}: {response.text[:200]}",
                status=response.status_code,
            )
        try:
            return response.json()
        except ValueError:
            return response.text

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class GroqTransport:
    """Groq chat completions.  Envelope is the SDK response as a plain dict."""

    def __init__(self, cfg: ClassifierConfig, client: Optional[AsyncGroq] = None) -> None:
        self.model = cfg.model
        self._cfg = cfg
        # retries are ours, not the SDK's
        self._client = client or AsyncGroq(api_key=cfg.api_key, max_retries=0)

    async def send(self, prompt: str) -> Any:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._cfg.temperature,
                max_tokens=self._cfg.max_output_tokens,
                stream=False,
            )
        except groq.APIStatusError as exc:
            raise TransportError(str(exc), status=exc.status_code) from exc
        except groq.APIError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        return response.model_dump()

    async def aclose(self) -> None:
        await self._client.close()


def make_transport(cfg: ClassifierConfig) -> ClassifierTransport:
    if cfg.provider == "groq":
        return GroqTransport(cfg)
    return GeminiTransport(cfg)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

Sleep = Callable[[float], Awaitable[None]]


class ClassifierClient:
    def __init__(
        self,
        cfg: ClassifierConfig,
        transport: Optional[ClassifierTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._cfg = cfg
        self._transport = transport or make_transport(cfg)
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self._transport.model

    async def classify(
        self,
        text: str,
        max_retries: Optional[int] = None,
        on_attempt: Optional[Callable[[int], None]] = None,
    ) -> Any:
        """Return the raw provider envelope for `text`, or raise ClassifierError."""
        retries = self._cfg.max_retries if max_retries is None else max_retries
        prompt = build_prompt(text)
        timeout = self._cfg.timeout_sec

        attempt = 0
        while True:
            attempt += 1
            if on_attempt is not None:
                on_attempt(attempt)
            log.debug("event=classify_attempt attempt=%d text_len=%d", attempt, len(text))
            try:
                envelope = await asyncio.wait_for(self._transport.send(prompt), timeout=timeout)
            except asyncio.TimeoutError:
                status, message = None, f"attempt timed out after {timeout:.1f}s"
            except TransportError as exc:
                status, message = exc.status, exc.message
            else:
                log.info("event=classify_ok attempts=%d model=%s", attempt, self.model)
                return envelope

            if is_terminal_status(status):
                log.warning(
                    "event=classify_terminal status=%s attempts=%d error=%s",
                    status, attempt, message,
                )
                raise ClassifierError(message, status=status, attempts=attempt)

            if attempt > retries:
                log.warning(
                    "event=classify_exhausted status=%s attempts=%d error=%s",
                    status, attempt, message,
                )
                raise ClassifierError(message, status=status, attempts=attempt)

            delay_ms = backoff_ms(attempt - 1)
            log.warning(
                "event=classify_retry status=%s attempt=%d delay_ms=%d error=%s",
                status, attempt, delay_ms, message,
            )
            await self._sleep(delay_ms / 1000.0)

    async def aclose(self) -> None:
        await self._transport.aclose()
