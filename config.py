"""
config.py — Sentiment Aura Engine · Runtime Configuration
=========================================================
Pydantic models for every tunable parameter across the engine.
Built once at process start (`AuraSettings.from_env()`), frozen, and passed
into the classifier client, orchestrator and smoother constructors.
A partial JSON settings file (`AURA_CONFIG`, or `--config` on the runner)
can be overlaid on the environment.  Used by:
  • server.py       — builds the app, GET /config (key redacted)
  • run_session.py  — console runner
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Literal, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from errors import ConfigError

log = logging.getLogger("sentiment_aura.config")

LOG_FORMAT  = "%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s – %(message)s"
LOG_DATEFMT = "%H:%M:%S"

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_GROQ_MODEL   = "llama-3.3-70b-versatile"


# ---------------------------------------------------------------------------
# Per-component config sections
# ---------------------------------------------------------------------------

class ClassifierConfig(BaseModel):
    """Upstream sentiment classifier (passed to ClassifierClient + transport)."""
    model_config = ConfigDict(frozen=True)

    provider: Literal["gemini", "groq"] = Field(default="gemini", description="Upstream provider")
    model: str = Field(default=DEFAULT_GEMINI_MODEL, description="Provider model ID")
    api_key: str = Field(default="", repr=False, description="Provider API key (opaque)")
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST base URL",
    )
    timeout_sec: float = Field(default=20.0, gt=0.0, le=120.0, description="Per-attempt timeout (s)")
    max_retries: int = Field(default=2, ge=0, le=10, description="Retries after the first attempt")
    temperature: float = Field(default=0.0, ge=0.0, le=2.0, description="Sampling temperature")
    max_output_tokens: int = Field(default=300, ge=16, description="Max response tokens")


class ServerConfig(BaseModel):
    """HTTP service parameters."""
    model_config = ConfigDict(frozen=True)

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, ge=1, le=65535)
    cors_origins: tuple[str, ...] = Field(default=("*",), description="Allowed CORS origins")
    max_text_chars: int = Field(default=10_000, ge=1, description="Reject /process_text input above this")


class SmootherConfig(BaseModel):
    """Signal smoother tuning (per 60 Hz reference frame)."""
    model_config = ConfigDict(frozen=True)

    easing: float = Field(default=0.1, ge=0.08, le=0.14, description="Per-frame easing factor")
    pulse_decay: float = Field(default=0.86, gt=0.0, lt=1.0, description="Per-frame pulse decay")
    snap_epsilon: float = Field(default=0.0005, gt=0.0, description="Snap-to-target distance")


class SessionConfig(BaseModel):
    """Orchestrator/session policy."""
    model_config = ConfigDict(frozen=True)

    single_flight: bool = Field(default=True, description="New line cancels the in-flight request")
    min_chars: int = Field(default=3, ge=1, description="Shorter input skips the classifier")
    results_buffer: int = Field(default=32, ge=1, description="Published-result queue bound")


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

class AuraSettings(BaseModel):
    """Complete runtime configuration for the engine."""
    model_config = ConfigDict(frozen=True)

    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    smoother: SmootherConfig = Field(default_factory=SmootherConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    debug: bool = Field(default=False, description="Verbose logging")

    @property
    def has_credentials(self) -> bool:
        return bool(self.classifier.api_key)

    def require_api_key(self) -> None:
        if not self.has_credentials:
            raise ConfigError(
                f"Missing API key for provider '{self.classifier.provider}' "
                "(GOOGLE_API_KEY / GEMINI_API_KEY or GROQ_API_KEY)"
            )

    def redacted(self) -> dict:
        data = self.model_dump(mode="json")
        data["classifier"]["api_key"] = "***" if self.has_credentials else ""
        return data

    # -- Environment -----------------------------------------------------------

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AuraSettings":
        """Build settings from the process environment (after loading `.env`)."""
        if environ is None:
            load_dotenv()
            environ = os.environ
        env = environ

        provider = env.get("CLASSIFIER_PROVIDER", "gemini").strip().lower()
        if provider == "groq":
            api_key = env.get("GROQ_API_KEY", "")
            model = env.get("CLASSIFIER_MODEL") or DEFAULT_GROQ_MODEL
        else:
            api_key = env.get("GOOGLE_API_KEY") or env.get("GEMINI_API_KEY", "")
            model = env.get("CLASSIFIER_MODEL") or env.get("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL

        classifier: dict = {"provider": provider, "model": model, "api_key": api_key}
        server: dict = {}
        _copy_env(env, classifier, "CLASSIFIER_TIMEOUT_SEC", "timeout_sec")
        _copy_env(env, classifier, "CLASSIFIER_MAX_RETRIES", "max_retries")
        _copy_env(env, classifier, "GEMINI_BASE_URL", "base_url")
        _copy_env(env, server, "HOST", "host")
        _copy_env(env, server, "PORT", "port")
        _copy_env(env, server, "MAX_TEXT_CHARS", "max_text_chars")
        if env.get("CORS_ORIGINS"):
            server["cors_origins"] = tuple(
                o.strip() for o in env["CORS_ORIGINS"].split(",") if o.strip()
            )

        settings = cls.model_validate({
            "classifier": classifier,
            "server": server,
            "debug": env.get("AURA_DEBUG", "").strip().lower() in ("1", "true", "yes", "on"),
        })
        log.info(
            "event=config_from_env provider=%s model=%s credentials=%s",
            settings.classifier.provider, settings.classifier.model, settings.has_credentials,
        )
        if env.get("AURA_CONFIG", "").strip():
            settings = cls.load(env["AURA_CONFIG"].strip(), base=settings)
        return settings

    # -- Settings file overlay -------------------------------------------------

    @classmethod
    def load(cls, path: str | Path, base: Optional["AuraSettings"] = None) -> "AuraSettings":
        """Overlay a (possibly partial) JSON settings file onto `base`.

        `base` defaults to built-in defaults.  The API key never comes from a
        file, so the one in `base` is kept.  A missing or unreadable file
        leaves `base` as is; values that fail validation raise ConfigError.
        """
        base = base or cls()
        p = Path(path)
        try:
            overlay = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("event=config_file_skipped path=%s error=%s", p, exc)
            return base
        if not isinstance(overlay, dict):
            raise ConfigError(f"{p}: settings file must hold a JSON object")

        if isinstance(overlay.get("classifier"), dict):
            overlay["classifier"].pop("api_key", None)
        try:
            settings = base.merge_patch(overlay)
        except PydanticValidationError as exc:
            raise ConfigError(f"{p}: {exc.error_count()} invalid setting(s): {exc}") from exc
        log.info("event=config_file_applied path=%s sections=%s", p, ",".join(sorted(overlay)))
        return settings

    def merge_patch(self, patch: dict) -> "AuraSettings":
        """Copy of these settings with `patch` overlaid section by section.

        {"session": {"single_flight": false}} flips one flag and keeps the
        rest of the session section.
        """
        return AuraSettings.model_validate(_overlay(self.model_dump(), patch))


def _copy_env(env: Mapping[str, str], target: dict, var: str, key: str) -> None:
    value = env.get(var)
    if value is not None and value.strip():
        target[key] = value.strip()


def _overlay(base: dict, patch: dict) -> dict:
    merged = dict(base)
    for key, value in patch.items():
        current = merged.get(key)
        merged[key] = _overlay(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
