"""Unit tests for the retry-then-fallback chat orchestrator."""

import asyncio
import threading
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from llm_orchestrator.agent.chat_orchestrator import ChatOrchestrator
from llm_orchestrator.config.schemas import OrchestratorConfig
from llm_orchestrator.providers.base import ChatRequest, ProviderName
from llm_orchestrator.providers.error_classifier import FailureKind
from llm_orchestrator.providers.exceptions import (
    AllProvidersFailedError,
    ProviderAPIError,
    ProviderUnavailableError,
)


def _request(**kwargs):
    return ChatRequest(messages=[{"role": "user", "content": "hello"}], **kwargs)


@pytest.fixture
def orchestrator_for(make_registry, settings_store, fast_config):
    def _make(config=None, interaction_logger=None, **specs):
        registry, backends = make_registry(**specs)
        orchestrator = ChatOrchestrator(
            registry=registry,
            settings_store=settings_store,
            interaction_logger=interaction_logger,
            config=config or fast_config,
        )
        return orchestrator, backends

    return _make


class TestPrimarySuccess:
    async def test_returns_primary_result_without_fallback_marker(self, orchestrator_for):
        orchestrator, backends = orchestrator_for(claude=["hi from claude"], groq=[])

        result = await orchestrator.chat(_request(provider="claude"))

        assert result.text == "hi from claude"
        assert result.provider is ProviderName.CLAUDE
        assert result.model == "claude-default"
        assert result.fallback_from is None
        assert result.usage == {"total_tokens": 3}
        assert backends["groq"].calls == []

    async def test_defaults_to_session_provider_and_model(self, orchestrator_for):
        orchestrator, backends = orchestrator_for(groq=[], gemini=[])
        orchestrator.switch_provider("groq", "llama-3.1-8b-instant")

        result = await orchestrator.chat(_request())

        assert result.provider is ProviderName.GROQ
        assert backends["groq"].calls[0]["model"] == "llama-3.1-8b-instant"

    async def test_explicit_provider_uses_its_own_default_model(self, orchestrator_for):
        orchestrator, backends = orchestrator_for(groq=[], gemini=[])
        orchestrator.switch_provider("groq", "llama-3.1-8b-instant")

        await orchestrator.chat(_request(provider="gemini"))

        assert backends["gemini"].calls[0]["model"] == "gemini-default"

    async def test_request_fields_reach_the_adapter(self, orchestrator_for):
        orchestrator, backends = orchestrator_for(openai=[])

        await orchestrator.chat(
            _request(
                provider="openai",
                model="gpt-4o-mini",
                system_prompt="sys",
                max_tokens=50,
                temperature=0.2,
            )
        )

        call = backends["openai"].calls[0]
        assert call["model"] == "gpt-4o-mini"
        assert call["system_prompt"] == "sys"
        assert call["max_tokens"] == 50
        assert call["temperature"] == 0.2


class TestRateLimitRetry:
    async def test_retries_once_after_backoff_and_succeeds(self, orchestrator_for):
        config = OrchestratorConfig(rate_limit_backoff=0.05)
        orchestrator, backends = orchestrator_for(
            config=config,
            claude=[Exception("429 Too Many Requests"), "second time lucky"],
            groq=[],
        )

        result = await orchestrator.chat(_request(provider="claude"))

        assert result.text == "second time lucky"
        assert result.provider is ProviderName.CLAUDE
        assert result.fallback_from is None
        calls = backends["claude"].calls
        assert len(calls) == 2
        assert calls[1]["at"] - calls[0]["at"] >= 0.04
        assert backends["groq"].calls == []

    async def test_backoff_uses_configured_delay(self, orchestrator_for):
        config = OrchestratorConfig(rate_limit_backoff=2.0)
        orchestrator, _ = orchestrator_for(
            config=config, claude=[Exception("quota exceeded"), "ok"]
        )

        with patch(
            "llm_orchestrator.agent.chat_orchestrator.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            await orchestrator.chat(_request(provider="claude"))

        sleep.assert_awaited_once_with(2.0)

    async def test_failed_retry_moves_to_fallbacks(self, orchestrator_for):
        orchestrator, backends = orchestrator_for(
            claude=[Exception("429"), Exception("429 again")],
            gemini=["from gemini"],
        )

        result = await orchestrator.chat(_request(provider="claude"))

        assert len(backends["claude"].calls) == 2
        assert result.provider is ProviderName.GEMINI
        assert result.fallback_from is ProviderName.CLAUDE

    async def test_other_kinds_are_not_retried(self, orchestrator_for):
        orchestrator, backends = orchestrator_for(
            claude=[Exception("503 overloaded")], groq=["from groq"]
        )

        with patch(
            "llm_orchestrator.agent.chat_orchestrator.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            result = await orchestrator.chat(_request(provider="claude"))

        sleep.assert_not_awaited()
        assert len(backends["claude"].calls) == 1
        assert result.provider is ProviderName.GROQ


class TestFallback:
    async def test_fallback_order_and_default_models(self, orchestrator_for):
        orchestrator, backends = orchestrator_for(
            claude=[Exception("500 internal")],
            openai=["from openai"],
            gemini=[Exception("503")],
            groq=[Exception("network unreachable")],
        )

        result = await orchestrator.chat(_request(provider="claude", model="claude-opus"))

        assert result.provider is ProviderName.OPENAI
        assert result.model == "openai-default"
        assert result.fallback_from is ProviderName.CLAUDE
        assert [len(backends[p].calls) for p in ("groq", "gemini", "openai")] == [1, 1, 1]
        assert backends["groq"].calls[0]["at"] < backends["gemini"].calls[0]["at"]
        assert backends["gemini"].calls[0]["at"] < backends["openai"].calls[0]["at"]

    async def test_auth_failure_still_falls_back(self, orchestrator_for):
        orchestrator, _ = orchestrator_for(
            claude=[Exception("401 Unauthorized")], groq=["from groq"]
        )

        result = await orchestrator.chat(_request(provider="claude"))

        assert result.provider is ProviderName.GROQ
        assert result.fallback_from is ProviderName.CLAUDE

    async def test_fallback_attempts_are_not_retried(self, orchestrator_for):
        orchestrator, backends = orchestrator_for(
            claude=[Exception("500")],
            groq=[Exception("429 Too Many Requests")],
            gemini=["from gemini"],
        )

        result = await orchestrator.chat(_request(provider="claude"))

        assert len(backends["groq"].calls) == 1
        assert result.provider is ProviderName.GEMINI

    async def test_fallback_cap(self, orchestrator_for):
        config = OrchestratorConfig(rate_limit_backoff=0.0, max_fallback_attempts=1)
        orchestrator, backends = orchestrator_for(
            config=config,
            claude=[Exception("500")],
            groq=[Exception("500")],
            gemini=["never reached"],
        )

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await orchestrator.chat(_request(provider="claude"))

        assert backends["gemini"].calls == []
        assert exc_info.value.fallback_failures == 1


class TestExhaustion:
    async def test_single_attempt_surfaces_primary_message(self, orchestrator_for):
        orchestrator, _ = orchestrator_for(claude=[Exception("503 Service Unavailable")])

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await orchestrator.chat(_request(provider="claude"))

        assert exc_info.value.user_message == (
            "claude service is temporarily unavailable. Trying another provider..."
        )
        assert len(exc_info.value.failures) == 1

    async def test_all_configured_providers_fail(self, orchestrator_for):
        failing = {
            name: [Exception("503 overloaded")]
            for name in ("claude", "openai", "gemini", "kimi", "groq")
        }
        orchestrator, backends = orchestrator_for(**failing)

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await orchestrator.chat(_request(provider="claude"))

        error = exc_info.value
        assert error.user_message == (
            "All AI providers failed. claude service is temporarily unavailable. "
            "Trying another provider... 4 fallback provider(s) also failed."
        )
        assert error.primary.provider is ProviderName.CLAUDE
        assert [f.provider.value for f in error.failures] == [
            "claude",
            "groq",
            "gemini",
            "kimi",
            "openai",
        ]
        assert all(len(b.calls) == 1 for b in backends.values())

    async def test_count_follows_configured_providers(self, orchestrator_for):
        orchestrator, _ = orchestrator_for(
            openai=[Exception("boom")], groq=[Exception("boom")], gemini=None
        )

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await orchestrator.chat(_request(provider="openai"))

        assert "1 fallback provider(s) also failed." in exc_info.value.user_message
        assert exc_info.value.primary.kind is FailureKind.UNKNOWN


class TestUnconfiguredProvider:
    async def test_falls_back_when_requested_provider_has_no_key(self, orchestrator_for):
        orchestrator, backends = orchestrator_for(
            openai=None, groq=["from groq"], gemini=["from gemini"]
        )

        result = await orchestrator.chat(_request(provider="openai"))

        assert result.provider is ProviderName.GROQ
        assert result.fallback_from is ProviderName.OPENAI
        assert result.text == "from groq"
        assert backends["gemini"].calls == []

    async def test_can_be_configured_to_fail_immediately(self, orchestrator_for):
        config = OrchestratorConfig(rate_limit_backoff=0.0, fallback_on_unconfigured=False)
        orchestrator, backends = orchestrator_for(
            config=config, openai=None, groq=["from groq"]
        )

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await orchestrator.chat(_request(provider="openai"))

        assert "not initialized" in exc_info.value.user_message
        assert exc_info.value.primary.kind is FailureKind.AUTH
        assert backends["groq"].calls == []


class TestAttemptTimeout:
    async def test_slow_attempt_times_out_and_falls_back(self, orchestrator_for, fake_backend):
        config = OrchestratorConfig(rate_limit_backoff=0.0, attempt_timeout=0.05)
        orchestrator, backends = orchestrator_for(config=config, groq=["from groq"])

        slow = fake_backend("claude")

        async def hang(*args, **kwargs):
            await asyncio.sleep(5)

        slow._complete = hang
        orchestrator.registry.register_backend(slow)

        result = await orchestrator.chat(_request(provider="claude"))

        assert result.provider is ProviderName.GROQ


class TestInteractionLog:
    async def test_success_is_logged_with_agent_id(self, orchestrator_for):
        sink = MagicMock()
        sink.log.return_value = None
        orchestrator, _ = orchestrator_for(interaction_logger=sink, groq=["hi"])

        await orchestrator.chat(_request(provider="groq", agent_id="agent-7"))
        await orchestrator.drain()

        sink.log.assert_called_once()
        agent_id, kind, input_payload, output_payload, context, success = sink.log.call_args.args
        assert (agent_id, kind, context, success) == ("agent-7", "chat", "", True)
        assert input_payload["messages"] == [{"role": "user", "content": "hello"}]
        assert output_payload == {"text": "hi", "model": "groq-default", "provider": "groq"}

    async def test_final_failure_is_logged(self, orchestrator_for):
        sink = MagicMock()
        sink.log.return_value = None
        orchestrator, _ = orchestrator_for(
            interaction_logger=sink, groq=[Exception("401 Unauthorized")]
        )

        with pytest.raises(AllProvidersFailedError):
            await orchestrator.chat(_request(provider="groq", agent_id="agent-7"))
        await orchestrator.drain()

        args = sink.log.call_args.args
        assert args[3] == {
            "error": "Groq API key is invalid or expired. Please update your API key in Settings."
        }
        assert args[5] is False

    async def test_no_agent_id_no_log(self, orchestrator_for):
        sink = MagicMock()
        sink.log.return_value = None
        orchestrator, _ = orchestrator_for(interaction_logger=sink, groq=["hi"])

        await orchestrator.chat(_request(provider="groq"))
        await orchestrator.drain()

        sink.log.assert_not_called()

    async def test_logger_failures_never_affect_the_result(self, orchestrator_for):
        sink = MagicMock()
        sink.log.return_value = None
        sink.log.side_effect = RuntimeError("db locked")
        orchestrator, _ = orchestrator_for(interaction_logger=sink, groq=["hi"])

        result = await orchestrator.chat(_request(provider="groq", agent_id="a"))
        await orchestrator.drain()

        assert result.text == "hi"
        sink.log.assert_called_once()

    async def test_async_logger_runs_in_background(self, orchestrator_for):
        written = []

        class AsyncSink:
            async def log(self, agent_id, kind, input_payload, output_payload, context="", success=True):
                await asyncio.sleep(0)
                written.append(agent_id)
                raise RuntimeError("ignored")

        orchestrator, _ = orchestrator_for(interaction_logger=AsyncSink(), groq=["hi"])

        result = await orchestrator.chat(_request(provider="groq", agent_id="bg"))
        await orchestrator.drain()

        assert result.text == "hi"
        assert written == ["bg"]

    async def test_sync_logger_does_not_block_the_event_loop(self, orchestrator_for):
        written = []
        loop_thread = threading.get_ident()

        class SlowSink:
            def log(self, agent_id, kind, input_payload, output_payload, context="", success=True):
                time.sleep(0.3)
                written.append((agent_id, threading.get_ident() != loop_thread))

        orchestrator, _ = orchestrator_for(interaction_logger=SlowSink(), groq=["hi"])
        ticks = 0

        async def ticker():
            nonlocal ticks
            for _ in range(5):
                await asyncio.sleep(0.02)
                ticks += 1

        started = time.monotonic()
        ticking = asyncio.create_task(ticker())
        result = await orchestrator.chat(_request(provider="groq", agent_id="slow"))
        elapsed = time.monotonic() - started
        await ticking

        assert result.text == "hi"
        assert elapsed < 0.2
        assert ticks == 5
        assert written == []

        await orchestrator.drain()
        assert written == [("slow", True)]


class TestSessionManagement:
    def test_initialize_precedence(self, orchestrator_for, settings_store, monkeypatch):
        orchestrator, _ = orchestrator_for(groq=[], claude=[], openai=[])
        monkeypatch.setenv("AI_PROVIDER", "openai")

        status = orchestrator.initialize(provider="claude")
        assert status["current_provider"] == "claude"
        assert settings_store.get("ai_provider") == "claude"

        settings_store.set("ai_provider", "groq")
        settings_store.set("ai_model", "llama-3.1-8b-instant")
        orchestrator.initialize(provider="claude")
        assert orchestrator.session.provider is ProviderName.GROQ
        assert orchestrator.session.model == "llama-3.1-8b-instant"

    def test_initialize_uses_env_then_default(self, orchestrator_for, monkeypatch):
        orchestrator, _ = orchestrator_for(openai=[], gemini=[])
        monkeypatch.setenv("AI_PROVIDER", "gpt")
        orchestrator.initialize()
        assert orchestrator.session.provider is ProviderName.OPENAI

    def test_initialize_defaults_to_gemini(self, orchestrator_for):
        orchestrator, _ = orchestrator_for(gemini=[], groq=[])
        result = orchestrator.initialize()
        assert result["current_provider"] == "gemini"
        assert result["current_model"] == "gemini-default"
        assert result["gemini"] is True

    def test_initialize_skips_unconfigured_selection(self, orchestrator_for, settings_store):
        orchestrator, _ = orchestrator_for(claude=None, gemini=[], groq=[])
        settings_store.set("ai_provider", "claude")

        orchestrator.initialize()

        assert orchestrator.session.provider is ProviderName.GROQ
        # The persisted choice is kept for when its key comes back
        assert settings_store.get("ai_provider") == "claude"

    def test_switch_provider_persists(self, orchestrator_for, settings_store):
        orchestrator, backends = orchestrator_for(groq=[])

        session = orchestrator.switch_provider("groq")

        assert session.provider is ProviderName.GROQ
        assert session.model == "groq-default"
        assert settings_store.get("ai_provider") == "groq"
        assert settings_store.get("ai_model") == "groq-default"
        assert backends["groq"].calls == []

    def test_switch_to_unconfigured_provider_raises(self, orchestrator_for):
        orchestrator, _ = orchestrator_for(openai=None)
        before = orchestrator.session

        with pytest.raises(ProviderUnavailableError, match="not configured"):
            orchestrator.switch_provider("openai")

        assert orchestrator.session == before

    def test_switch_survives_store_failure(self, make_registry):
        registry, _ = make_registry(groq=[])
        store = MagicMock()
        store.set.side_effect = RuntimeError("db down")
        orchestrator = ChatOrchestrator(registry=registry, settings_store=store)

        assert orchestrator.switch_provider("groq").provider is ProviderName.GROQ

    def test_current_provider_snapshot(self, orchestrator_for):
        orchestrator, _ = orchestrator_for(groq=[])
        orchestrator.switch_provider("groq", "gemma2-9b-it")

        status = orchestrator.current_provider()

        assert status["provider"] == "groq"
        assert status["model"] == "gemma2-9b-it"
        assert status["available"]["groq"] is True
        assert status["available"]["claude"] is False
        assert status["has_keys"]["groq"] is True
        assert [m["id"] for m in status["models"]["claude"]][0] == "claude-sonnet-4-20250514"

    def test_cost_effective_provider(self, orchestrator_for):
        orchestrator, _ = orchestrator_for(claude=[], kimi=[])
        choice = orchestrator.cost_effective_provider()
        assert choice.provider is ProviderName.KIMI
        assert orchestrator.session.provider is ProviderName.GEMINI

    async def test_update_api_key_makes_provider_usable(self, orchestrator_for, settings_store):
        orchestrator, backends = orchestrator_for(groq=None)

        assert orchestrator.update_api_key("groq", "new-key") is True
        result = await orchestrator.chat(_request(provider="groq"))

        assert result.provider is ProviderName.GROQ
        assert settings_store.get("groq_api_key") == "new-key"


async def test_concurrent_requests_are_independent(orchestrator_for):
    orchestrator, backends = orchestrator_for(
        claude=[Exception("500")], groq=["a", "b"], gemini=[]
    )

    results = await asyncio.gather(
        orchestrator.chat(_request(provider="claude")),
        orchestrator.chat(_request(provider="gemini")),
    )

    assert results[0].provider is ProviderName.GROQ
    assert results[1].provider is ProviderName.GEMINI


async def test_provider_api_error_status_is_classified(orchestrator_for):
    orchestrator, _ = orchestrator_for(
        groq=[ProviderAPIError("Groq API error: 401 - bad", provider="groq", status_code=401)]
    )

    with pytest.raises(AllProvidersFailedError) as exc_info:
        await orchestrator.chat(_request(provider="groq"))

    assert exc_info.value.primary.kind is FailureKind.AUTH
