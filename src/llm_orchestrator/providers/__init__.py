"""
LLM Provider System

One chat backend per vendor, registered by provider name, plus the error
classification and fallback ordering used by the chat orchestrator.
"""

# Import provider modules to trigger decorator registration
from . import (
    claude_provider,  # noqa: F401
    gemini_provider,  # noqa: F401
    groq_provider,  # noqa: F401
    kimi_provider,  # noqa: F401
    openai_provider,  # noqa: F401
)
from .base import (
    AdapterResult,
    ChatBackend,
    ChatMessage,
    ChatRequest,
    ChatResult,
    ModelInfo,
    ProviderConfig,
    ProviderName,
)
from .error_classifier import ClassifiedError, ErrorSignal, FailureKind, classify
from .exceptions import (
    AllProvidersFailedError,
    ProviderAPIError,
    ProviderError,
    ProviderNotFoundError,
    ProviderNotInitializedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from .provider_manager import ProviderRegistry, register_provider
from .router import FALLBACK_PRIORITY, FallbackSelector

__all__ = [
    "FALLBACK_PRIORITY",
    "AdapterResult",
    "AllProvidersFailedError",
    "ChatBackend",
    "ChatMessage",
    "ChatRequest",
    "ChatResult",
    "ClassifiedError",
    "ErrorSignal",
    "FailureKind",
    "FallbackSelector",
    "ModelInfo",
    "ProviderAPIError",
    "ProviderConfig",
    "ProviderError",
    "ProviderName",
    "ProviderNotFoundError",
    "ProviderNotInitializedError",
    "ProviderRegistry",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "classify",
    "register_provider",
]
