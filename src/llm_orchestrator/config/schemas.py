"""Configuration schemas for the chat orchestrator."""

from __future__ import annotations

from pydantic import BaseModel, Field

from llm_orchestrator.providers.base import ProviderName


class OrchestratorConfig(BaseModel):
    """Tunables of the retry-then-fallback protocol."""

    default_provider: ProviderName = Field(
        default=ProviderName.GEMINI,
        description="Provider selected when nothing is persisted or configured",
    )
    rate_limit_backoff: float = Field(
        default=2.0,
        ge=0.0,
        description="Seconds to wait before the single rate-limit retry",
    )
    attempt_timeout: float | None = Field(
        default=60.0,
        gt=0.0,
        description="Per-attempt timeout in seconds; None relies on the transport",
    )
    max_fallback_attempts: int | None = Field(
        default=None,
        ge=0,
        description="Cap on fallback providers tried per request; None means no cap",
    )
    fallback_on_unconfigured: bool = Field(
        default=True,
        description="Fall back when the requested provider has no credential",
    )

    def with_overrides(self, **overrides) -> OrchestratorConfig:
        """Create a new config with the given overrides applied.

        An explicit ``None`` is kept, so ``attempt_timeout=None`` disables the
        timeout and ``max_fallback_attempts=None`` removes the cap.

        Raises:
            ValueError: If any override value is invalid
        """
        try:
            return OrchestratorConfig(**{**self.model_dump(), **overrides})
        except Exception as e:
            raise ValueError(f"Invalid orchestrator configuration override: {e}") from e
