"""
Anthropic (Claude) backend
"""

from anthropic import AsyncAnthropic

from llm_orchestrator.providers.base import (
    AdapterResult,
    ChatBackend,
    ChatMessage,
    ModelInfo,
    ProviderName,
    normalize_usage,
)
from llm_orchestrator.providers.provider_manager import register_provider


@register_provider(ProviderName.CLAUDE)
class ClaudeBackend(ChatBackend):
    """Messages API backend; the system instruction travels as its own field."""

    name = ProviderName.CLAUDE
    label = "Anthropic"
    settings_key = "anthropic_api_key"
    api_key_envs = ("ANTHROPIC_API_KEY",)
    model_env = "CLAUDE_MODEL"
    fallback_model = "claude-sonnet-4-20250514"
    catalog = (
        ModelInfo(id="claude-sonnet-4-20250514", name="Claude Sonnet 4", default=True),
        ModelInfo(id="claude-3-5-sonnet-20241022", name="Claude 3.5 Sonnet"),
        ModelInfo(id="claude-3-haiku-20240307", name="Claude 3 Haiku"),
    )
    # Anthropic rejects temperatures above 1.0
    temperature_range = (0.0, 1.0)

    def _create_client(self, api_key: str) -> AsyncAnthropic:
        return AsyncAnthropic(api_key=api_key)

    async def _complete(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> AdapterResult:
        params = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {
                    "role": "assistant" if m.role == "assistant" else "user",
                    "content": m.content,
                }
                for m in messages
            ],
        }
        if system_prompt:
            params["system"] = system_prompt

        response = await self.client.messages.create(**params)

        text = "".join(
            getattr(block, "text", "")
            for block in (response.content or [])
            if getattr(block, "type", "text") == "text"
        )
        return AdapterResult(text=text, usage=normalize_usage(response.usage))
