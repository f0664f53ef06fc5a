"""
Error taxonomy for the live interview engine.

Provider failures are classified in two stages: structured payloads first
(``code``/``status``/``message`` fields, including JSON embedded in an
exception message), then a substring fallback on the raw text.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_MESSAGE = "I'm sorry, an unexpected error occurred. Please try again later."
RATE_LIMIT_MESSAGE = "The AI service is currently experiencing high demand. Retrying..."
RATE_LIMIT_EXHAUSTED_MESSAGE = (
    "The AI service is still experiencing high demand. Please try again in a few minutes."
)
QUOTA_MESSAGE = (
    "You have reached the daily limit for this model. "
    "Please select a different model in the settings or try again tomorrow."
)
EVALUATION_QUOTA_MESSAGE = (
    "You have reached the daily limit for the evaluation model. "
    "To try again, start a new interview and select a different evaluation model."
)
DEVICE_MESSAGE = (
    "The microphone stopped delivering audio. "
    "Check the device connection and permissions, then start a new interview."
)


class ErrorKind(str, Enum):
    """Classification of a failure surfaced to the session controller."""

    RATE_LIMITED = "rate_limited"
    QUOTA_EXHAUSTED = "quota_exhausted"
    DEVICE_UNAVAILABLE = "device_unavailable"
    OTHER = "other"

    @property
    def retryable(self) -> bool:
        return self is ErrorKind.RATE_LIMITED


@dataclass(frozen=True)
class ErrorDetails:
    kind: ErrorKind
    message: str


class LiveSessionError(Exception):
    """Exception carrying a classified, user-facing error."""

    def __init__(self, details: ErrorDetails) -> None:
        super().__init__(details.message)
        self.details = details

    @property
    def kind(self) -> ErrorKind:
        return self.details.kind


class DeviceUnavailableError(LiveSessionError):
    """Raised when the capture device stream ends or cannot be opened."""

    def __init__(self, message: str = DEVICE_MESSAGE) -> None:
        super().__init__(ErrorDetails(ErrorKind.DEVICE_UNAVAILABLE, message))


class InvalidTransitionError(RuntimeError):
    """Raised on a session state change the lifecycle does not allow."""


def _mentions_quota(text: str) -> bool:
    text = text.lower()
    return "daily limit" in text or "quota" in text


def _from_payload(payload: Any) -> ErrorDetails:
    """Classify a structured ``{code, status, message}`` error payload."""
    if isinstance(payload, dict):
        code = payload.get("code")
        status = payload.get("status")
        message = payload.get("message") or ""
    else:
        code = getattr(payload, "code", None)
        status = getattr(payload, "status", None)
        message = getattr(payload, "message", None) or ""
    message = str(message)

    if status == "RESOURCE_EXHAUSTED" or code == 429:
        if _mentions_quota(message):
            return ErrorDetails(ErrorKind.QUOTA_EXHAUSTED, QUOTA_MESSAGE)
        return ErrorDetails(ErrorKind.RATE_LIMITED, RATE_LIMIT_MESSAGE)
    return ErrorDetails(ErrorKind.OTHER, message or DEFAULT_MESSAGE)


def _has_structured_fields(error: Any) -> bool:
    # Close codes on websocket exceptions are not provider payloads; require a
    # status string or a code paired with a message.
    if isinstance(getattr(error, "status", None), str):
        return True
    return isinstance(getattr(error, "code", None), int) and isinstance(
        getattr(error, "message", None), str
    )


def describe_error(error: Any) -> ErrorDetails:
    """
    Classify an arbitrary error into an ``ErrorDetails``.

    Args:
        error: An exception, a provider error object, or a decoded payload.

    Returns:
        The error kind plus the message to show the user. ``OTHER`` errors
        carry the provider's message verbatim.
    """
    if isinstance(error, LiveSessionError):
        return error.details

    # Structured stage.
    if isinstance(error, dict):
        error = error.get("error", error)
        if isinstance(error, str):
            return describe_error(error)
        return _from_payload(error)
    nested = getattr(error, "error", None)
    if nested is not None and not isinstance(error, str):
        if isinstance(nested, str):
            return describe_error(nested)
        return _from_payload(nested)
    if isinstance(error, BaseException) and _has_structured_fields(error):
        return _from_payload(error)

    text = str(error) if error is not None else ""
    if not text:
        return ErrorDetails(ErrorKind.OTHER, DEFAULT_MESSAGE)

    try:
        decoded = json.loads(text)
    except ValueError:
        decoded = None
    if isinstance(decoded, dict) and decoded.get("error"):
        return _from_payload(decoded["error"])

    # Substring fallback.
    lowered = text.lower()
    if "resource_exhausted" in lowered or "429" in lowered or "rate limit" in lowered:
        if _mentions_quota(lowered):
            return ErrorDetails(ErrorKind.QUOTA_EXHAUSTED, QUOTA_MESSAGE)
        return ErrorDetails(ErrorKind.RATE_LIMITED, RATE_LIMIT_MESSAGE)
    return ErrorDetails(ErrorKind.OTHER, text)


def classify(error: Any) -> ErrorKind:
    """Return only the kind of ``error``."""
    return describe_error(error).kind
