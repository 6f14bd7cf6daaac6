"""
Raw HTTP driver for OpenAI-compatible chat completion endpoints

Used by providers that do not ship an SDK we depend on (NVIDIA NIM, Groq).
Every attempt is one ``POST`` to ``<base_url>/chat/completions``; a non-2xx
response becomes a :class:`ProviderAPIError` that embeds the status code and
the response body text.
"""

from typing import Any, ClassVar

import httpx

from llm_orchestrator.providers.base import AdapterResult, ChatBackend, ChatMessage
from llm_orchestrator.providers.exceptions import ProviderAPIError, ProviderError
from llm_orchestrator.utils.logging import get_logger

logger = get_logger("providers.compatible_drivers")


def build_openai_style_messages(
    messages: list[ChatMessage], system_prompt: str | None
) -> list[dict[str, str]]:
    """System instruction first as its own turn, then the conversation as-is."""
    formatted = []
    if system_prompt:
        formatted.append({"role": "system", "content": system_prompt})
    formatted.extend({"role": m.role, "content": m.content} for m in messages)
    return formatted


class OpenAICompatibleHTTPBackend(ChatBackend):
    """Backend speaking the OpenAI chat.completions wire format over httpx."""

    base_url: ClassVar[str]
    # Label used in raised error messages, e.g. "Groq API error: 429 - ..."
    error_label: ClassVar[str]

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.transport = transport
        super().__init__(api_key=api_key, default_model=default_model)

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def _create_client(self, api_key: str) -> Any:
        # A fresh AsyncClient is opened per attempt; only the key is held.
        return None

    def _build_payload(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        return {
            "model": model,
            "messages": build_openai_style_messages(messages, system_prompt),
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": False,
        }

    async def _complete(
        self,
        messages: list[ChatMessage],
        system_prompt: str | None,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> AdapterResult:
        payload = self._build_payload(
            messages, system_prompt, model, max_tokens, temperature
        )
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport
        ) as client:
            response = await client.post(
                self.completions_url, headers=headers, json=payload
            )

            if not response.is_success:
                body = response.text
                logger.debug(
                    f"{self.error_label} returned HTTP {response.status_code}",
                    extra={"provider": self.name.value},
                )
                raise ProviderAPIError(
                    f"{self.error_label} API error: {response.status_code} - {body}",
                    provider=self.name.value,
                    status_code=response.status_code,
                    body=body,
                )

            return self._parse_response(response)

    def _parse_response(self, response: httpx.Response) -> AdapterResult:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.error_label} returned a non-JSON body: {e}",
                provider=self.name.value,
            ) from e

        choices = data.get("choices") or [{}]
        message = choices[0].get("message") or {}
        return AdapterResult(
            text=message.get("content") or "",
            usage=data.get("usage"),
        )
