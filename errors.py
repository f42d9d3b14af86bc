"""
errors.py — Sentiment Aura Engine · Error Taxonomy
===================================================
One exception base (`AuraError`) carrying an `ErrorKind` tag.  Call sites
match on `err.kind`, not on the subclass, and every kind maps to a status
code and a user-facing message.

Only the classifier client and input validation raise.  The parser,
normalizers and builder degrade to derived values instead.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "ValidationError"
    CLASSIFIER = "ClassifierError"
    PARSE = "ParseError"
    TRANSPORT = "TransportError"
    AUDIO_CAPTURE = "AudioCaptureError"
    CONFIG = "ConfigError"
    INTERNAL = "InternalError"


ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CLASSIFIER: 502,
    ErrorKind.PARSE: 502,
    ErrorKind.TRANSPORT: 502,
    ErrorKind.AUDIO_CAPTURE: 500,
    ErrorKind.CONFIG: 503,
    ErrorKind.INTERNAL: 500,
}

ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "Request input is invalid.",
    ErrorKind.CLASSIFIER: "Sentiment service unavailable, showing a local estimate.",
    ErrorKind.PARSE: "Sentiment service returned an unreadable answer.",
    ErrorKind.TRANSPORT: "Transcription stream failed, please retry.",
    ErrorKind.AUDIO_CAPTURE: "Microphone capture failed.",
    ErrorKind.CONFIG: "Classifier credentials are not configured.",
    ErrorKind.INTERNAL: "Unexpected internal error.",
}


class AuraError(Exception):
    """Base for every structured error raised by the engine."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status if status is not None else ERROR_STATUS[self.kind]

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "type": self.kind.value,
            "statusCode": self.status,
        }


class ValidationError(AuraError):
    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        return data


class ClassifierError(AuraError):
    """Upstream failure after retries were exhausted, or a terminal 4xx.

    `status` is the last upstream HTTP status (None for timeouts and
    network errors) and `attempts` the total number of attempts made.
    """

    kind = ErrorKind.CLASSIFIER

    def __init__(self, message: str, *, status: Optional[int], attempts: int) -> None:
        super().__init__(message)
        self.status = status
        self.attempts = attempts

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["statusCode"] = self.status or ERROR_STATUS[self.kind]
        data["attempts"] = self.attempts
        return data


class TransportError(AuraError):
    """A single failed network attempt.  Raised by transports, consumed by the client."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class ConfigError(AuraError):
    kind = ErrorKind.CONFIG


def is_terminal_status(status: Optional[int]) -> bool:
    """4xx from upstream means the request itself was rejected; retrying cannot help."""
    return status is not None and 400 <= status < 500
