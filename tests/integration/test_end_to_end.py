"""
End-to-end flows: bootstrap, provider selection, fallback and interaction logging.
"""

import pytest

from llm_orchestrator.config.env_manager import EnvManager
from llm_orchestrator.config.schemas import OrchestratorConfig
from llm_orchestrator.core.bootstrap import bootstrap
from llm_orchestrator.providers.base import ChatMessage, ChatRequest, ProviderName
from llm_orchestrator.providers.exceptions import (
    AllProvidersFailedError,
    ProviderAPIError,
)
from llm_orchestrator.stores.interaction_log import SqliteInteractionLogger
from llm_orchestrator.stores.settings_store import InMemorySettingsStore


@pytest.fixture
def app_context(tmp_path, fake_backend):
    """Bootstrapped context whose listed backends are replaced by scripted fakes.

    ``None`` installs an unconfigured fake.
    """

    def _make(**specs):
        store = InMemorySettingsStore()
        sink = SqliteInteractionLogger()
        ctx = bootstrap(
            settings_store=store,
            interaction_logger=sink,
            config=OrchestratorConfig(rate_limit_backoff=0.0, attempt_timeout=5.0),
            env_manager=EnvManager(env_paths=[tmp_path / ".env"]),
        )
        backends = {}
        for name, outcomes in specs.items():
            if outcomes is None:
                backend = fake_backend(name, api_key=None)
            else:
                backend = fake_backend(name, outcomes)
            ctx["registry"].register_backend(backend)
            backends[name] = backend
        ctx.orchestrator.initialize()
        return ctx, backends, store, sink

    return _make


def _request(**kwargs):
    return ChatRequest(messages=(ChatMessage(role="user", content="Hello"),), **kwargs)


async def test_unconfigured_primary_falls_back_to_cheapest(app_context):
    ctx, backends, _, _ = app_context(openai=None, groq=["from groq"], gemini=["from gemini"])

    result = await ctx.orchestrator.chat(_request(provider="openai"))

    assert result.text == "from groq"
    assert result.provider is ProviderName.GROQ
    assert result.model == "groq-default"
    assert result.fallback_from is ProviderName.OPENAI
    assert backends["gemini"].calls == []


async def test_rate_limit_retry_then_fallback_is_logged(app_context):
    rate_limited = ProviderAPIError(
        "Groq API error: 429 - rate limit", provider="groq", status_code=429
    )
    ctx, backends, _, sink = app_context(
        groq=[rate_limited, rate_limited], gemini=["gemini answer"]
    )
    ctx.orchestrator.switch_provider("groq")

    result = await ctx.orchestrator.chat(_request(agent_id="agent-42"))
    await ctx.orchestrator.drain()

    assert len(backends["groq"].calls) == 2
    assert result.provider is ProviderName.GEMINI
    assert result.fallback_from is ProviderName.GROQ
    rows = sink.fetch("agent-42")
    assert [r["success"] for r in rows] == [True]
    assert rows[0]["output"]["provider"] == "gemini"


async def test_everything_failing_raises_one_error(app_context):
    ctx, _, _, sink = app_context(
        groq=[ProviderAPIError("503 Service Unavailable", provider="groq", status_code=503)],
        gemini=[ProviderAPIError("500 internal", provider="gemini", status_code=500)],
    )
    ctx.orchestrator.switch_provider("groq")

    with pytest.raises(AllProvidersFailedError) as exc_info:
        await ctx.orchestrator.chat(_request(agent_id="agent-1"))
    await ctx.orchestrator.drain()

    error = exc_info.value
    assert error.user_message.startswith(
        "All AI providers failed. groq service is temporarily unavailable."
    )
    assert error.user_message.endswith("1 fallback provider(s) also failed.")
    assert [f.provider for f in error.failures] == [ProviderName.GROQ, ProviderName.GEMINI]
    assert sink.fetch("agent-1")[0]["success"] is False


async def test_selection_survives_restart(app_context, tmp_path):
    ctx, _, store, _ = app_context(groq=[], claude=[])
    ctx.orchestrator.switch_provider("claude", "claude-3-haiku-20240307")

    restarted = bootstrap(
        settings_store=store,
        env_manager=EnvManager(env_paths=[tmp_path / ".env"]),
        credentials={"claude": "sk-ant"},
    )

    assert restarted.orchestrator.session.provider is ProviderName.CLAUDE
    assert restarted.orchestrator.session.model == "claude-3-haiku-20240307"
