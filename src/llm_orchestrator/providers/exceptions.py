"""
Provider-specific exceptions
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from llm_orchestrator.core.exceptions import LLMError

if TYPE_CHECKING:
    from llm_orchestrator.providers.error_classifier import ClassifiedError


class ProviderError(LLMError):
    """Base exception for provider-related errors"""

    def __init__(self, message: str, provider: str | None = None, **kwargs):
        self.provider = provider
        self.message = message
        super().__init__(f"[{provider}] {message}" if provider else message, **kwargs)


class ProviderNotInitializedError(ProviderError):
    """Raised by an adapter invoked without a configured credential.

    Distinct from :class:`ProviderAPIError`: nothing was sent over the wire.
    """

    def __init__(self, message: str, provider: str | None = None, **kwargs):
        super().__init__(message, provider, **kwargs)


class ProviderAPIError(ProviderError):
    """Raised by HTTP adapters for any non-2xx response.

    The message keeps the ``"<Label> API error: <status> - <body>"`` shape so
    that substring classification still works when the status is lost.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
        **kwargs,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, provider, **kwargs)


class ProviderTimeoutError(ProviderError):
    """Raised when a single adapter attempt exceeds the attempt timeout"""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        timeout: float | None = None,
        **kwargs,
    ):
        self.timeout = timeout
        super().__init__(message, provider, **kwargs)


class ProviderNotFoundError(ProviderError):
    """Raised when a provider name does not match any registered backend"""

    def __init__(self, message: str, provider: str | None = None, **kwargs):
        super().__init__(message, provider, **kwargs)


class ProviderUnavailableError(ProviderError):
    """Raised when switching to a provider that has no credential"""

    def __init__(self, message: str, provider: str | None = None, **kwargs):
        super().__init__(message, provider, **kwargs)


class AllProvidersFailedError(LLMError):
    """Raised once per chat call when the primary and every fallback failed.

    ``user_message`` is the single user-facing sentence (``str(error)`` adds
    the ``[llm]`` subsystem tag); ``failures`` keeps the per-provider
    classifications for logging and tests.
    """

    def __init__(self, message: str, failures: list[ClassifiedError]):
        self.user_message = message
        self.failures = list(failures)
        super().__init__(message)

    @property
    def primary(self) -> ClassifiedError:
        return self.failures[0]

    @property
    def fallback_failures(self) -> int:
        return max(len(self.failures) - 1, 0)
