"""
Base classes and data model shared by every chat backend
"""

from __future__ import annotations

import abc
import asyncio
import inspect
import os
from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from llm_orchestrator.providers.exceptions import (
    ProviderNotFoundError,
    ProviderNotInitializedError,
)
from llm_orchestrator.utils.logging import get_logger

logger = get_logger("providers.base")

# Close tasks for replaced clients, kept referenced until they finish
_closing_clients: set[asyncio.Task] = set()


class ProviderName(str, Enum):
    """Identifier of one interchangeable LLM backend."""

    CLAUDE = "claude"
    OPENAI = "openai"
    GEMINI = "gemini"
    KIMI = "kimi"
    GROQ = "groq"

    @classmethod
    def parse(cls, value: str | ProviderName) -> ProviderName:
        """Resolve a provider name or one of its vendor aliases.

        Raises:
            ProviderNotFoundError: If the name matches no provider
        """
        if isinstance(value, ProviderName):
            return value
        key = str(value).strip().lower()
        key = PROVIDER_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ProviderNotFoundError(
                f"Unknown provider '{value}'. Expected one of: "
                f"{', '.join(p.value for p in cls)}"
            ) from None


PROVIDER_ALIASES = {
    "anthropic": "claude",
    "gpt": "openai",
    "google": "gemini",
    "nvidia": "kimi",
}


class ChatMessage(BaseModel):
    """One conversation turn."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Uniform chat request accepted by the orchestrator. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    messages: tuple[ChatMessage, ...] = Field(
        description="Ordered conversation turns; the last one is the current turn"
    )
    system_prompt: str | None = Field(
        default=None, description="Optional system instruction"
    )
    provider: ProviderName | None = Field(
        default=None, description="Target provider; defaults to the session's current one"
    )
    model: str | None = Field(
        default=None, description="Target model; defaults to the provider's default"
    )
    max_tokens: int = Field(default=1024, gt=0, description="Maximum output tokens")
    temperature: float = Field(
        default=0.7, ge=0.0, description="Sampling temperature, clamped per provider"
    )
    agent_id: str | None = Field(
        default=None, description="Correlation identifier for the interaction log"
    )

    @field_validator("messages")
    @classmethod
    def validate_messages(cls, v):
        if not v:
            raise ValueError("messages cannot be empty")
        return v

    @field_validator("provider", mode="before")
    @classmethod
    def validate_provider(cls, v):
        if v is None or isinstance(v, ProviderName):
            return v
        try:
            return ProviderName.parse(v)
        except ProviderNotFoundError as e:
            raise ValueError(e.message) from None


class AdapterResult(BaseModel):
    """Normalized output of a single adapter call."""

    text: str = ""
    usage: dict[str, Any] | None = None


class ChatResult(BaseModel):
    """Result returned to the caller of the orchestrator."""

    text: str = Field(description="Generated text")
    provider: ProviderName = Field(
        description="Provider whose adapter actually produced the text"
    )
    model: str = Field(description="Model used for the successful attempt")
    usage: dict[str, Any] | None = Field(default=None, description="Token usage")
    fallback_from: ProviderName | None = Field(
        default=None,
        description="Originally requested provider when a fallback produced the result",
    )


class ModelInfo(BaseModel):
    """A selectable model of a provider's catalog."""

    id: str
    name: str
    default: bool = False


class ProviderConfig(BaseModel):
    """Resolved configuration of one provider."""

    name: ProviderName = Field(description="Provider identifier")
    credential: str | None = Field(
        default=None, repr=False, exclude=True, description="API key, if configured"
    )
    default_model: str = Field(description="Model used when none is requested")
    models: list[ModelInfo] = Field(
        default_factory=list, description="Selectable models for this provider"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def available(self) -> bool:
        return bool(self.credential)


def normalize_usage(usage: Any) -> dict[str, Any] | None:
    """Turn an SDK usage object or mapping into a plain dict."""
    if usage is None:
        return None
    if hasattr(usage, "model_dump"):
        return usage.model_dump()
    if isinstance(usage, dict):
        return dict(usage)
    return {
        key: getattr(usage, key)
        for key in (
            "prompt_tokens",
            "completion_tokens",
            "total_tokens",
            "input_tokens",
            "output_tokens",
        )
        if getattr(usage, key, None) is not None
    } or None


class ChatBackend(abc.ABC):
    """One provider's adapter between the uniform chat contract and its wire format.

    Subclasses set the class-level metadata and implement ``_create_client``
    and ``_complete``. Vendor errors are never caught here; classification
    happens in the orchestrator.
    """

    name: ClassVar[ProviderName]
    label: ClassVar[str]
    settings_key: ClassVar[str]
    api_key_envs: ClassVar[tuple[str, ...]]
    model_env: ClassVar[str]
    fallback_model: ClassVar[str]
    catalog: ClassVar[tuple[ModelInfo, ...]] = ()
    temperature_range: ClassVar[tuple[float, float]] = (0.0, 2.0)

    def __init__(self, api_key: str | None = None, default_model: str | None = None):
        self.api_key: str | None = None
        self.client: Any = None
        self._default_model = default_model or self.resolve_default_model()
        if api_key:
            self.set_credential(api_key)

    @classmethod
    def resolve_default_model(cls) -> str:
        """Hardcoded default, overridable through the provider's model env var."""
        return os.getenv(cls.model_env) or cls.fallback_model

    @classmethod
    def credential_from_env(cls) -> str | None:
        for env_name in cls.api_key_envs:
            if value := os.getenv(env_name):
                return value
        return None

    def default_model(self) -> str:
        return self._default_model

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def set_credential(self, api_key: str) -> None:
        """Rebuild the underlying client with a new secret.

        The replaced client is closed; the same secret keeps the current client.
        """
        if not api_key:
            raise ValueError(f"API key for {self.label} cannot be empty")
        if api_key == self.api_key and self.client is not None:
            return
        previous = self.client
        self.client = self._create_client(api_key)
        self.api_key = api_key
        self._release_client(previous)
        logger.debug(f"{self.label} client initialized", extra={"provider": self.name.value})

    def clear_credential(self) -> None:
        previous = self.client
        self.api_key = None
        self.client = None
        self._release_client(previous)

    def _release_client(self, client: Any) -> None:
        """Close a vendor client that is no longer used.

        Async ``close()`` coroutines run on the current loop when one is
        running, else to completion right away.
        """
        close = getattr(client, "close", None)
        if client is None or client is self.client or not callable(close):
            return
        try:
            pending = close()
            if inspect.iscoroutine(pending):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    asyncio.run(pending)
                else:
                    task = loop.create_task(pending)
                    _closing_clients.add(task)
                    task.add_done_callback(_closing_clients.discard)
        except Exception as e:
            logger.debug(
                f"Closing previous {self.label} client failed: {e}",
                extra={"provider": self.name.value},
            )

    def refresh_default_model(self) -> str:
        self._default_model = self.resolve_default_model()
        return self._default_model

    def clamp_temperature(self, temperature: float) -> float:
        low, high = self.temperature_range
        return min(max(temperature, low), high)

    @property
    def not_initialized_message(self) -> str:
        return (
            f"{self.label} client not initialized. "
            f"Add {self.api_key_envs[0]} to .env or settings"
        )

    async def chat(
        self,
        messages: list[ChatMessage] | tuple[ChatMessage, ...],
        *,
        system_prompt: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> AdapterResult:
        """Perform exactly one chat completion against this backend."""
        if not self.is_configured():
            raise ProviderNotInitializedError(
                self.not_initialized_message, provider=self.name.value
            )
        return await self._complete(
            list(messages),
            system_prompt,
            model or self.default_model(),
            max_tokens,
            self.clamp_temperature(temperature),
        )

    @abc.abstractmethod
    def _create_client(self, api_key: str) -> Any:
        """Build the vendor client (or ``None`` for raw HTTP backends)."""

    @abc.abstractmethod
    async def _complete(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> AdapterResult:
        """Issue the vendor request and normalize its response."""
