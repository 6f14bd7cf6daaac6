"""
Kimi backend served through the NVIDIA NIM OpenAI-compatible endpoint
"""

from llm_orchestrator.providers.base import ModelInfo, ProviderName
from llm_orchestrator.providers.compatible_drivers import OpenAICompatibleHTTPBackend
from llm_orchestrator.providers.provider_manager import register_provider


@register_provider(ProviderName.KIMI)
class KimiBackend(OpenAICompatibleHTTPBackend):
    """NVIDIA NIM chat completions over raw HTTP."""

    name = ProviderName.KIMI
    label = "NVIDIA (Kimi)"
    error_label = "NVIDIA"
    settings_key = "kimi_api_key"
    api_key_envs = ("KIMI_API_KEY", "NVIDIA_API_KEY")
    model_env = "KIMI_MODEL"
    fallback_model = "nvidia/llama-3.1-nemotron-70b-instruct"
    base_url = "https://integrate.api.nvidia.com/v1"
    catalog = (
        ModelInfo(
            id="nvidia/llama-3.1-nemotron-70b-instruct",
            name="Nemotron 70B",
            default=True,
        ),
        ModelInfo(id="nvidia/llama-3.1-nemotron-51b-instruct", name="Nemotron 51B"),
        ModelInfo(id="mistralai/mixtral-8x22b-instruct-v0.1", name="Mixtral 8x22B"),
    )
    # NIM hosted models accept temperatures up to 1.0
    temperature_range = (0.0, 1.0)
