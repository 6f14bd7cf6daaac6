"""Map raw adapter failures onto a fixed five-way failure taxonomy.

Vendor SDKs share no exception hierarchy, so classification works in two
passes. First an :class:`ErrorSignal` is extracted from whatever structured
data the exception carries (HTTP status, vendor error code). When that is
inconclusive the stringified message is matched against ordered substring
rules; the first matching rule wins.

``classify`` is pure: the same error always yields the same result.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from llm_orchestrator.providers.base import ProviderName
from llm_orchestrator.providers.exceptions import (
    ProviderError,
    ProviderNotInitializedError,
    ProviderTimeoutError,
)


class FailureKind(str, Enum):
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    SERVER = "server"
    UNKNOWN = "unknown"


class ClassifiedError(BaseModel):
    """Outcome of classifying one failed attempt."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderName
    kind: FailureKind
    message: str
    retryable: bool


class ErrorSignal(BaseModel):
    """Structured facts pulled out of an exception, when it has any."""

    model_config = ConfigDict(frozen=True)

    http_status: int | None = None
    error_code: str | None = None
    raw_message: str = ""


DISPLAY_NAMES = {
    ProviderName.CLAUDE: "Anthropic (Claude)",
    ProviderName.OPENAI: "OpenAI",
    ProviderName.GEMINI: "Google Gemini",
    ProviderName.KIMI: "NVIDIA (Kimi)",
    ProviderName.GROQ: "Groq",
}

# Ordered; first match wins
SUBSTRING_RULES: tuple[tuple[FailureKind, tuple[str, ...]], ...] = (
    (
        FailureKind.AUTH,
        ("401", "authentication_error", "invalid x-api-key", "Unauthorized", "Invalid API"),
    ),
    (
        FailureKind.RATE_LIMIT,
        ("429", "Too Many Requests", "quota", "rate", "Quota exceeded"),
    ),
    (FailureKind.NETWORK, ("ECONNREFUSED", "ETIMEDOUT", "fetch failed", "network")),
    (FailureKind.SERVER, ("500", "502", "503", "overloaded")),
)

ERROR_CODE_KINDS = {
    "authentication_error": FailureKind.AUTH,
    "permission_error": FailureKind.AUTH,
    "invalid_api_key": FailureKind.AUTH,
    "rate_limit_error": FailureKind.RATE_LIMIT,
    "rate_limit_exceeded": FailureKind.RATE_LIMIT,
    "insufficient_quota": FailureKind.RATE_LIMIT,
    "overloaded_error": FailureKind.SERVER,
    "api_error": FailureKind.SERVER,
    "server_error": FailureKind.SERVER,
}

# SDK connection/timeout exceptions that do not derive from httpx or builtins
_NETWORK_ERROR_NAMES = {"APIConnectionError", "APITimeoutError", "DeadlineExceeded"}

UNKNOWN_EXCERPT_LIMIT = 120


def _raw_message(error: BaseException) -> str:
    if isinstance(error, ProviderError):
        return error.message
    return str(error) or type(error).__name__


def _status_of(error: BaseException) -> int | None:
    for attr in ("status_code", "code"):
        value = getattr(error, attr, None)
        # google.api_core exceptions expose the HTTP status as ``code``
        if isinstance(value, int) and not isinstance(value, bool) and 100 <= value < 600:
            return value
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def _error_code_of(error: BaseException) -> str | None:
    body: Any = getattr(error, "body", None)
    if isinstance(body, dict):
        # Anthropic nests the error object; OpenAI passes it directly
        inner = body.get("error", body)
        if isinstance(inner, dict):
            for key in ("type", "code"):
                value = inner.get(key)
                if isinstance(value, str) and value in ERROR_CODE_KINDS:
                    return value
    code = getattr(error, "code", None)
    if isinstance(code, str) and code:
        return code
    return None


def extract_signal(error: BaseException) -> ErrorSignal:
    return ErrorSignal(
        http_status=_status_of(error),
        error_code=_error_code_of(error),
        raw_message=_raw_message(error),
    )


def _kind_from_structure(error: BaseException, signal: ErrorSignal) -> FailureKind | None:
    if isinstance(error, ProviderNotInitializedError):
        return FailureKind.AUTH
    if isinstance(
        error, (ProviderTimeoutError, TimeoutError, ConnectionError, httpx.TransportError)
    ):
        return FailureKind.NETWORK
    if type(error).__name__ in _NETWORK_ERROR_NAMES:
        return FailureKind.NETWORK

    if signal.error_code in ERROR_CODE_KINDS:
        return ERROR_CODE_KINDS[signal.error_code]

    status = signal.http_status
    if status in (401, 403):
        return FailureKind.AUTH
    if status == 429:
        return FailureKind.RATE_LIMIT
    if status == 408:
        return FailureKind.NETWORK
    if status is not None and status >= 500:
        return FailureKind.SERVER
    return None


def _kind_from_message(message: str) -> FailureKind:
    for kind, needles in SUBSTRING_RULES:
        if any(needle in message for needle in needles):
            return kind
    return FailureKind.UNKNOWN


def _user_message(
    provider: ProviderName, kind: FailureKind, error: BaseException, raw: str
) -> str:
    name = provider.value
    if kind is FailureKind.AUTH:
        if isinstance(error, ProviderNotInitializedError):
            return raw
        return (
            f"{DISPLAY_NAMES.get(provider, name)} API key is invalid or expired. "
            "Please update your API key in Settings."
        )
    if kind is FailureKind.RATE_LIMIT:
        return f"{name} rate limit or quota exceeded. Trying another provider..."
    if kind is FailureKind.NETWORK:
        return f"Could not reach {name} API. Check your network connection."
    if kind is FailureKind.SERVER:
        return f"{name} service is temporarily unavailable. Trying another provider..."
    return f"{name} error: {raw[:UNKNOWN_EXCERPT_LIMIT]}"


def classify(provider: ProviderName | str, error: BaseException) -> ClassifiedError:
    """Classify one failed adapter attempt.

    Only ``auth`` is non-retryable; every other kind, ``unknown`` included,
    permits a retry or fallback.
    """
    provider = ProviderName.parse(provider)
    signal = extract_signal(error)
    kind = _kind_from_structure(error, signal) or _kind_from_message(signal.raw_message)

    return ClassifiedError(
        provider=provider,
        kind=kind,
        message=_user_message(provider, kind, error, signal.raw_message),
        retryable=kind is not FailureKind.AUTH,
    )
