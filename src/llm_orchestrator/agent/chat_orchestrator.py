"""Chat orchestrator: one entry point over every configured provider.

A request goes to the requested (or current) provider first. A rate-limited
primary is retried once after a short backoff; any other retryable failure,
or an auth failure, moves on to the fallback candidates in priority order.
Callers see either a :class:`ChatResult` or one :class:`AllProvidersFailedError`.
"""

from __future__ import annotations

import asyncio
import inspect
import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from llm_orchestrator.config.schemas import OrchestratorConfig
from llm_orchestrator.core.protocols import IInteractionLogger, ISettingsStore
from llm_orchestrator.providers.base import (
    AdapterResult,
    ChatRequest,
    ChatResult,
    ProviderName,
)
from llm_orchestrator.providers.error_classifier import (
    ClassifiedError,
    FailureKind,
    classify,
)
from llm_orchestrator.providers.exceptions import (
    AllProvidersFailedError,
    ProviderNotFoundError,
    ProviderNotInitializedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from llm_orchestrator.providers.provider_manager import ProviderRegistry
from llm_orchestrator.providers.router import FallbackSelector
from llm_orchestrator.stores.settings_store import read_setting, write_setting
from llm_orchestrator.utils.logging import get_logger

logger = get_logger("agent.orchestrator")

PROVIDER_SETTING = "ai_provider"
MODEL_SETTING = "ai_model"
PROVIDER_ENV = "AI_PROVIDER"


class OrchestratorSession(BaseModel):
    """Current provider/model selection of one orchestrator instance."""

    provider: ProviderName
    model: str


class ChatOrchestrator:
    """Retry-then-fallback facade over the provider registry."""

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        settings_store: ISettingsStore | None = None,
        interaction_logger: IInteractionLogger | None = None,
        config: OrchestratorConfig | None = None,
    ):
        self.settings_store = settings_store
        self.registry = registry or ProviderRegistry(settings_store=settings_store)
        self.interaction_logger = interaction_logger
        self.config = config or OrchestratorConfig()
        self.selector = FallbackSelector(
            self.registry, max_attempts=self.config.max_fallback_attempts
        )
        self.session = OrchestratorSession(
            provider=self.config.default_provider,
            model=self.registry.default_model_for(self.config.default_provider),
        )
        self._background_tasks: set[asyncio.Task] = set()

    # ── Setup and administration ─────────────────────────────────────────

    def initialize(
        self,
        credentials: Mapping[str, str | None] | None = None,
        provider: str | ProviderName | None = None,
    ) -> dict[str, Any]:
        """Configure every backend and pick the current provider.

        Selection order: persisted ``ai_provider``, then ``provider``, then the
        ``AI_PROVIDER`` environment variable, then the configured default.
        """
        availability = self.registry.configure(credentials)

        persisted = self._parse_provider(read_setting(self.settings_store, PROVIDER_SETTING))
        chosen = (
            persisted
            or self._parse_provider(provider)
            or self._parse_provider(os.getenv(PROVIDER_ENV))
            or self.config.default_provider
        )

        if not self.registry.is_available(chosen) and self.registry.has_any_provider():
            replacement, _ = self.selector.cost_effective()
            logger.warning(
                f"Selected provider {chosen.value} has no credential; using {replacement.value}",
                extra={"provider": chosen.value},
            )
            chosen = replacement

        model = self._initial_model(chosen, from_settings=chosen is persisted)
        self.session = OrchestratorSession(provider=chosen, model=model)

        if persisted is None:
            write_setting(self.settings_store, PROVIDER_SETTING, chosen.value)
            write_setting(self.settings_store, MODEL_SETTING, model)

        logger.info(
            f"AI provider initialized: {chosen.value}",
            extra={
                "model": model,
                **{p.value: ok for p, ok in availability.items()},
            },
        )
        return {
            **{p.value: ok for p, ok in availability.items()},
            "current_provider": chosen.value,
            "current_model": model,
        }

    def _parse_provider(self, value: Any) -> ProviderName | None:
        if not value:
            return None
        try:
            return ProviderName.parse(value)
        except ProviderNotFoundError:
            logger.warning(f"Ignoring unknown provider selection '{value}'")
            return None

    def _initial_model(self, provider: ProviderName, from_settings: bool) -> str:
        saved = read_setting(self.settings_store, MODEL_SETTING)
        if saved:
            catalog_ids = {m.id for m in self.registry.get_backend(provider).catalog}
            if from_settings or saved in catalog_ids:
                return str(saved)
        return self.registry.default_model_for(provider)

    def switch_provider(
        self, provider: str | ProviderName, model: str | None = None
    ) -> OrchestratorSession:
        """Make ``provider`` current. Never calls an adapter.

        Raises:
            ProviderNotFoundError: If the name matches no provider
            ProviderUnavailableError: If the provider has no credential
        """
        name = ProviderName.parse(provider)
        backend = self.registry.get_backend(name)
        if not backend.is_configured():
            raise ProviderUnavailableError(
                f"{backend.label} API key not configured", provider=name.value
            )

        self.session = OrchestratorSession(
            provider=name, model=model or self.registry.default_model_for(name)
        )
        write_setting(self.settings_store, PROVIDER_SETTING, name.value)
        write_setting(self.settings_store, MODEL_SETTING, self.session.model)

        logger.info(
            f"Switched AI provider to {name.value}", extra={"model": self.session.model}
        )
        return self.session.model_copy()

    def current_provider(self) -> dict[str, Any]:
        """Snapshot of the selection, availability and model catalogs."""
        configs = self.registry.provider_configs()
        return {
            "provider": self.session.provider.value,
            "model": self.session.model,
            "available": {p.value: c.available for p, c in configs.items()},
            "has_keys": {
                p.value: c.available
                or bool(self.registry.resolve_credential(self.registry.get_backend(p)))
                for p, c in configs.items()
            },
            "models": {
                p.value: [m.model_dump() for m in c.models] for p, c in configs.items()
            },
        }

    def cost_effective_provider(self) -> OrchestratorSession:
        """Cheapest usable provider for bulk work; does not change the session."""
        provider, model = self.selector.cost_effective(self.session)
        return OrchestratorSession(provider=provider, model=model)

    def update_api_key(self, provider: str | ProviderName, api_key: str) -> bool:
        return self.registry.set_credential(provider, api_key)

    # ── Chat ─────────────────────────────────────────────────────────────

    async def chat(self, request: ChatRequest) -> ChatResult:
        """Run one request through the retry-then-fallback protocol.

        Raises:
            AllProvidersFailedError: If the primary and every fallback failed
        """
        # Selection is captured once; a concurrent switch does not affect this call
        session = self.session
        provider = request.provider or session.provider
        if request.model:
            model = request.model
        elif provider is session.provider:
            model = session.model
        else:
            model = self.registry.default_model_for(provider)

        failures: list[ClassifiedError] = []

        try:
            result = await self._attempt(provider, model, request)
        except Exception as error:
            primary = self._record_failure(provider, error, request, failures, "Primary")
            unconfigured = isinstance(error, ProviderNotInitializedError)
        else:
            return self._succeed(request, result, provider, model)

        if primary.kind is FailureKind.RATE_LIMIT:
            logger.info(
                f"Retrying {provider.value} after rate limit "
                f"({self.config.rate_limit_backoff:g}s delay)",
                extra={"provider": provider.value, "agent_id": request.agent_id},
            )
            await asyncio.sleep(self.config.rate_limit_backoff)
            try:
                result = await self._attempt(provider, model, request)
            except Exception as retry_error:
                retry = classify(provider, retry_error)
                logger.warning(
                    f"Retry for {provider.value} also failed, trying fallback providers",
                    extra={"provider": provider.value, "kind": retry.kind.value},
                )
            else:
                return self._succeed(request, result, provider, model)

        if self._should_fall_back(primary, unconfigured):
            for candidate in self.selector.candidates(provider):
                candidate_model = self.registry.default_model_for(candidate)
                logger.info(
                    f"Trying fallback provider: {candidate.value}",
                    extra={"provider": candidate.value, "agent_id": request.agent_id},
                )
                try:
                    result = await self._attempt(candidate, candidate_model, request)
                except Exception as error:
                    self._record_failure(candidate, error, request, failures, "Fallback")
                else:
                    return self._succeed(
                        request, result, candidate, candidate_model, fallback_from=provider
                    )

        raise self._exhausted(request, failures)

    def _should_fall_back(self, primary: ClassifiedError, unconfigured: bool) -> bool:
        if not (primary.retryable or primary.kind is FailureKind.AUTH):
            return False
        if unconfigured and not self.config.fallback_on_unconfigured:
            return False
        return True

    async def _attempt(
        self, provider: ProviderName, model: str, request: ChatRequest
    ) -> AdapterResult:
        backend = self.registry.get_backend(provider)
        call = backend.chat(
            request.messages,
            system_prompt=request.system_prompt,
            model=model,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )
        timeout = self.config.attempt_timeout
        if timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout)
        except TimeoutError as e:
            raise ProviderTimeoutError(
                f"{backend.label} request timed out after {timeout:g}s",
                provider=provider.value,
                timeout=timeout,
            ) from e

    def _record_failure(
        self,
        provider: ProviderName,
        error: Exception,
        request: ChatRequest,
        failures: list[ClassifiedError],
        role: str,
    ) -> ClassifiedError:
        classified = classify(provider, error)
        failures.append(classified)
        logger.warning(
            f"{role} provider {provider.value} failed ({classified.kind.value}): "
            f"{classified.message}",
            extra={
                "provider": provider.value,
                "kind": classified.kind.value,
                "agent_id": request.agent_id,
            },
        )
        return classified

    def _succeed(
        self,
        request: ChatRequest,
        result: AdapterResult,
        provider: ProviderName,
        model: str,
        fallback_from: ProviderName | None = None,
    ) -> ChatResult:
        chat_result = ChatResult(
            text=result.text,
            provider=provider,
            model=model,
            usage=result.usage,
            fallback_from=fallback_from,
        )
        self._log_interaction(
            request,
            {"text": chat_result.text, "model": model, "provider": provider.value},
            success=True,
        )
        return chat_result

    def _exhausted(
        self, request: ChatRequest, failures: list[ClassifiedError]
    ) -> AllProvidersFailedError:
        primary = failures[0]
        if len(failures) == 1:
            message = primary.message
        else:
            message = (
                f"All AI providers failed. {primary.message} "
                f"{len(failures) - 1} fallback provider(s) also failed."
            )
        logger.error(
            message,
            extra={
                "provider": primary.provider.value,
                "kind": primary.kind.value,
                "agent_id": request.agent_id,
            },
        )
        self._log_interaction(request, {"error": primary.message}, success=False)
        return AllProvidersFailedError(message, failures)

    # ── Interaction log ──────────────────────────────────────────────────

    def _log_interaction(
        self, request: ChatRequest, output_payload: dict[str, Any], success: bool
    ) -> None:
        if not request.agent_id or self.interaction_logger is None:
            return

        input_payload = {
            "messages": [m.model_dump() for m in request.messages],
            "options": request.model_dump(mode="json", exclude={"messages"}),
        }
        args = (request.agent_id, "chat", input_payload, output_payload, "", success)
        sink = self.interaction_logger.log
        # Synchronous sinks (sqlite, files) run in a worker thread, off the event loop
        if inspect.iscoroutinefunction(sink):
            pending = sink(*args)
        else:
            pending = asyncio.to_thread(sink, *args)

        task = asyncio.ensure_future(pending)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_log_done)

    def _on_log_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Interaction log write failed: {task.exception()}")

    async def drain(self) -> None:
        """Wait for pending interaction log writes."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
