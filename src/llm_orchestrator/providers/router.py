"""
Fallback selection: which configured providers to try after a failure
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from llm_orchestrator.providers.base import ProviderName
from llm_orchestrator.providers.provider_manager import ProviderRegistry
from llm_orchestrator.utils.logging import get_logger

if TYPE_CHECKING:
    from llm_orchestrator.agent.chat_orchestrator import OrchestratorSession

logger = get_logger("providers.router")

# Cheapest / most generous free tier first, most expensive last
FALLBACK_PRIORITY: tuple[ProviderName, ...] = (
    ProviderName.GROQ,
    ProviderName.GEMINI,
    ProviderName.KIMI,
    ProviderName.OPENAI,
    ProviderName.CLAUDE,
)


class FallbackSelector:
    """Deterministic ordering of alternate providers."""

    def __init__(self, registry: ProviderRegistry, max_attempts: int | None = None):
        self.registry = registry
        self.max_attempts = max_attempts

    def candidates(self, failed: ProviderName | str) -> list[ProviderName]:
        """Available providers other than ``failed``, in priority order."""
        failed = ProviderName.parse(failed)
        ordered = [
            p
            for p in FALLBACK_PRIORITY
            if p is not failed and self.registry.is_available(p)
        ]
        if self.max_attempts is not None and len(ordered) > self.max_attempts:
            logger.debug(
                f"Fallback list capped at {self.max_attempts}",
                extra={"provider": failed.value, "dropped": len(ordered) - self.max_attempts},
            )
            ordered = ordered[: self.max_attempts]
        return ordered

    def cost_effective(
        self, session: OrchestratorSession | None = None
    ) -> tuple[ProviderName, str]:
        """Cheapest usable provider with its default model.

        Falls back to the session's current selection, then to the first
        priority entry, when nothing is configured.
        """
        for provider in FALLBACK_PRIORITY:
            if self.registry.is_available(provider):
                return provider, self.registry.default_model_for(provider)

        if session is not None:
            return session.provider, session.model
        provider = FALLBACK_PRIORITY[0]
        return provider, self.registry.default_model_for(provider)
