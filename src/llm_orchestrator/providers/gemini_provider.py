"""
Google Gemini backend

Uses the google-generativeai chat session API: every message except the last
one becomes ``history`` and the last message is sent as the current turn.
The SDK keeps its API key in module-level state, so one Gemini credential is
active per process.
"""

from typing import Any

import google.generativeai as genai

from llm_orchestrator.providers.base import (
    AdapterResult,
    ChatBackend,
    ChatMessage,
    ModelInfo,
    ProviderName,
)
from llm_orchestrator.providers.provider_manager import register_provider


def split_history(
    messages: list[ChatMessage], system_prompt: str | None
) -> tuple[list[dict[str, Any]], str]:
    """Return ``(history, current_turn)`` in Gemini's shape.

    Without history the system instruction is folded into the current turn.
    """
    history = [
        {
            "role": "model" if m.role == "assistant" else "user",
            "parts": [m.content],
        }
        for m in messages[:-1]
    ]
    prompt = messages[-1].content if messages else ""
    if system_prompt and not history:
        prompt = f"{system_prompt}\n\n{prompt}"
    return history, prompt


@register_provider(ProviderName.GEMINI)
class GeminiBackend(ChatBackend):
    """Chat-session backend for Google Gemini."""

    name = ProviderName.GEMINI
    label = "Google Gemini"
    settings_key = "gemini_api_key"
    api_key_envs = ("GEMINI_API_KEY",)
    model_env = "GEMINI_MODEL"
    fallback_model = "gemini-2.5-flash-preview-05-20"
    catalog = (
        ModelInfo(
            id="gemini-2.5-flash-preview-05-20", name="Gemini 2.5 Flash", default=True
        ),
        ModelInfo(id="gemini-2.0-flash", name="Gemini 2.0 Flash"),
        ModelInfo(id="gemini-1.5-pro", name="Gemini 1.5 Pro"),
    )

    def _create_client(self, api_key: str) -> Any:
        genai.configure(api_key=api_key)
        return genai

    async def _complete(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> AdapterResult:
        history, prompt = split_history(messages, system_prompt)

        model_kwargs: dict[str, Any] = {
            "model_name": model,
            "generation_config": {
                "max_output_tokens": max_tokens,
                "temperature": temperature,
            },
        }
        if system_prompt and history:
            model_kwargs["system_instruction"] = system_prompt

        generative_model = self.client.GenerativeModel(**model_kwargs)
        session = generative_model.start_chat(history=history)
        response = await session.send_message_async(prompt)

        return AdapterResult(text=response.text or "", usage=self._usage(response))

    def _usage(self, response: Any) -> dict[str, Any] | None:
        metadata = getattr(response, "usage_metadata", None)
        if metadata is None:
            return None
        return {
            "prompt_tokens": getattr(metadata, "prompt_token_count", None),
            "completion_tokens": getattr(metadata, "candidates_token_count", None),
            "total_tokens": getattr(metadata, "total_token_count", None),
        }
