"""
Groq backend (Llama, Qwen, Mixtral, Gemma; free tier available)
"""

from llm_orchestrator.providers.base import ModelInfo, ProviderName
from llm_orchestrator.providers.compatible_drivers import OpenAICompatibleHTTPBackend
from llm_orchestrator.providers.provider_manager import register_provider


@register_provider(ProviderName.GROQ)
class GroqBackend(OpenAICompatibleHTTPBackend):
    """Groq chat completions over raw HTTP."""

    name = ProviderName.GROQ
    label = "Groq"
    error_label = "Groq"
    settings_key = "groq_api_key"
    api_key_envs = ("GROQ_API_KEY",)
    model_env = "GROQ_MODEL"
    fallback_model = "llama-3.3-70b-versatile"
    base_url = "https://api.groq.com/openai/v1"
    catalog = (
        ModelInfo(id="llama-3.3-70b-versatile", name="Llama 3.3 70B (Free)", default=True),
        ModelInfo(id="llama-3.1-8b-instant", name="Llama 3.1 8B Instant (Free)"),
        ModelInfo(id="gemma2-9b-it", name="Gemma 2 9B (Free)"),
        ModelInfo(id="mixtral-8x7b-32768", name="Mixtral 8x7B (Free)"),
    )

    @property
    def not_initialized_message(self) -> str:
        return (
            "Groq client not initialized. Get a free key at console.groq.com "
            "and add GROQ_API_KEY to .env"
        )
