"""
OpenAI (GPT) backend
"""

from openai import AsyncOpenAI

from llm_orchestrator.providers.base import (
    AdapterResult,
    ChatBackend,
    ChatMessage,
    ModelInfo,
    ProviderName,
    normalize_usage,
)
from llm_orchestrator.providers.compatible_drivers import build_openai_style_messages
from llm_orchestrator.providers.provider_manager import register_provider
from llm_orchestrator.utils.logging import get_logger

logger = get_logger("providers.openai")


@register_provider(ProviderName.OPENAI)
class OpenAIBackend(ChatBackend):
    """chat.completions backend using the openai SDK."""

    name = ProviderName.OPENAI
    label = "OpenAI"
    settings_key = "openai_api_key"
    api_key_envs = ("OPENAI_API_KEY",)
    model_env = "GPT_MODEL"
    fallback_model = "gpt-4o"
    catalog = (
        ModelInfo(id="gpt-4o", name="GPT-4o", default=True),
        ModelInfo(id="gpt-4o-mini", name="GPT-4o Mini"),
        ModelInfo(id="gpt-4-turbo", name="GPT-4 Turbo"),
    )

    def _create_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key)

    async def _complete(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> AdapterResult:
        response = await self.client.chat.completions.create(
            model=model,
            messages=build_openai_style_messages(messages, system_prompt),
            max_tokens=max_tokens,
            temperature=temperature,
        )
        logger.debug(
            f"{self.label} response received",
            extra={"provider": self.name.value, "response_id": getattr(response, "id", None)},
        )

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        return AdapterResult(
            text=content, usage=normalize_usage(getattr(response, "usage", None))
        )
