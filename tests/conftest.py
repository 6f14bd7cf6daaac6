from __future__ import annotations

import sys
import time
from pathlib import Path

# Add project src/ to sys.path for imports like `llm_orchestrator.*`
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest

from llm_orchestrator.config.schemas import OrchestratorConfig
from llm_orchestrator.providers.base import AdapterResult, ChatBackend, ProviderName
from llm_orchestrator.providers.provider_manager import ProviderRegistry
from llm_orchestrator.stores.settings_store import InMemorySettingsStore

PROVIDER_ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "KIMI_API_KEY",
    "NVIDIA_API_KEY",
    "GROQ_API_KEY",
    "CLAUDE_MODEL",
    "GPT_MODEL",
    "GEMINI_MODEL",
    "KIMI_MODEL",
    "GROQ_MODEL",
    "AI_PROVIDER",
)


@pytest.fixture(autouse=True)
def clean_provider_env(monkeypatch):
    """Keep developer credentials and tunables out of every test."""
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    import os

    for name in list(os.environ):
        if name.startswith("LLMO_"):
            monkeypatch.delenv(name, raising=False)


class FakeBackend(ChatBackend):
    """Scripted backend: each call consumes the next outcome.

    An outcome is either the response text or an exception to raise.
    Once the script runs out every call answers ``"<provider> ok"``.
    """

    def __init__(self, provider, outcomes=None, api_key="test-key", default_model=None):
        self.name = provider
        self.label = f"Fake {provider.value}"
        self.settings_key = f"{provider.value}_api_key"
        self.api_key_envs = (f"FAKE_{provider.value.upper()}_API_KEY",)
        self._env_key = api_key
        self.outcomes = list(outcomes or [])
        self.calls: list[dict] = []
        super().__init__(api_key=api_key, default_model=default_model)

    def resolve_default_model(self):
        return f"{self.name.value}-default"

    def credential_from_env(self):
        # Stands in for the environment so registry.configure() keeps the key
        return self._env_key

    def _create_client(self, api_key):
        return object()

    async def _complete(self, messages, system_prompt, model, max_tokens, temperature):
        self.calls.append(
            {
                "model": model,
                "system_prompt": system_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "messages": messages,
                "at": time.monotonic(),
            }
        )
        outcome = self.outcomes.pop(0) if self.outcomes else f"{self.name.value} ok"
        if isinstance(outcome, BaseException):
            raise outcome
        return AdapterResult(text=outcome, usage={"total_tokens": 3})


@pytest.fixture
def fake_backend():
    """Factory: ``fake_backend("groq", ["hi"])`` or ``fake_backend("openai", api_key=None)``."""

    def _make(name, outcomes=None, **kwargs):
        return FakeBackend(ProviderName.parse(name), outcomes, **kwargs)

    return _make


@pytest.fixture
def settings_store():
    return InMemorySettingsStore()


@pytest.fixture
def make_registry(fake_backend, settings_store):
    """Factory building a registry whose listed providers are fakes.

    ``make_registry(claude=[...], openai=None)`` installs a configured fake
    for claude and an unconfigured one for openai. Unlisted providers keep
    their real, unconfigured backends.
    """

    def _make(**specs):
        registry = ProviderRegistry(settings_store=settings_store)
        backends = {}
        for name, outcomes in specs.items():
            if outcomes is None:
                backend = fake_backend(name, api_key=None)
            else:
                backend = fake_backend(name, outcomes)
            registry.register_backend(backend)
            backends[name] = backend
        return registry, backends

    return _make


@pytest.fixture
def fast_config():
    return OrchestratorConfig(rate_limit_backoff=0.0, attempt_timeout=5.0)
