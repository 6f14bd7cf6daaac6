"""
Provider registry: backend registration, credential resolution and availability
"""

from collections.abc import Mapping
from typing import Any

from llm_orchestrator.core.protocols import ISettingsStore
from llm_orchestrator.providers.base import ChatBackend, ProviderConfig, ProviderName
from llm_orchestrator.providers.exceptions import ProviderNotFoundError
from llm_orchestrator.stores.settings_store import read_setting, write_setting
from llm_orchestrator.utils.logging import get_logger

logger = get_logger("providers.registry")


# Module-level registry for backend classes (filled by the decorator)
_backend_registry: dict[ProviderName, type[ChatBackend]] = {}


def register_provider(name: ProviderName | str):
    """Decorator to register a backend class under a provider name"""
    provider = ProviderName.parse(name)

    def decorator(cls: type[ChatBackend]) -> type[ChatBackend]:
        _backend_registry[provider] = cls
        logger.debug(f"Registered builtin provider: {provider.value}")
        return cls

    return decorator


def registered_backends() -> dict[ProviderName, type[ChatBackend]]:
    return dict(_backend_registry)


class ProviderRegistry:
    """Holds one backend instance per provider and knows which are usable.

    Instances start unconfigured; :meth:`configure` resolves credentials in
    priority order (explicit override, persisted setting, environment).
    """

    def __init__(
        self,
        settings_store: ISettingsStore | None = None,
        backend_options: Mapping[ProviderName, dict[str, Any]] | None = None,
    ):
        self.settings_store = settings_store
        self._backends: dict[ProviderName, ChatBackend] = {}

        options = backend_options or {}
        for name, backend_cls in _backend_registry.items():
            self._backends[name] = backend_cls(**options.get(name, {}))

    def register_backend(self, backend: ChatBackend) -> None:
        """Install a ready-made backend instance, replacing the registered one."""
        self._backends[backend.name] = backend
        logger.debug(f"Installed backend instance for: {backend.name.value}")

    def _resolve(self, name: str | ProviderName) -> ProviderName:
        provider = ProviderName.parse(name)
        if provider not in self._backends:
            raise ProviderNotFoundError(
                f"Provider '{provider.value}' has no registered backend",
                provider=provider.value,
            )
        return provider

    def resolve_credential(
        self, backend: ChatBackend, override: str | None = None
    ) -> str | None:
        if override:
            return override
        persisted = read_setting(self.settings_store, backend.settings_key)
        if persisted:
            return str(persisted)
        return backend.credential_from_env()

    def configure(
        self, overrides: Mapping[str, str | None] | None = None
    ) -> dict[ProviderName, bool]:
        """(Re)build every backend from the current credential sources.

        ``overrides`` maps provider names (aliases accepted) to explicit
        credentials. Missing credentials mark a provider unavailable.
        """
        explicit: dict[ProviderName, str | None] = {}
        for key, value in (overrides or {}).items():
            explicit[self._resolve(key)] = value

        availability: dict[ProviderName, bool] = {}
        for name, backend in self._backends.items():
            backend.refresh_default_model()
            credential = self.resolve_credential(backend, explicit.get(name))
            if credential:
                backend.set_credential(credential)
            else:
                backend.clear_credential()
            availability[name] = backend.is_configured()

        configured = [n.value for n in self.available_providers()]
        logger.info(
            f"Providers configured: {len(configured)}/{len(self._backends)} available",
            extra={"available": ",".join(configured) or "none"},
        )
        return availability

    def set_credential(self, name: str | ProviderName, secret: str) -> bool:
        """Install a new secret for one provider and persist it best-effort.

        Raises:
            ProviderNotFoundError: If the name matches no provider
            ValueError: If the secret is empty
        """
        provider = self._resolve(name)
        backend = self._backends[provider]
        backend.set_credential(secret)

        if not write_setting(self.settings_store, backend.settings_key, secret):
            logger.warning(
                f"{backend.label} key not persisted; it is active for this process only",
                extra={"provider": provider.value},
            )
        logger.info(f"{backend.label} credential updated", extra={"provider": provider.value})
        return True

    def get_backend(self, name: str | ProviderName) -> ChatBackend:
        return self._backends[self._resolve(name)]

    def is_available(self, name: str | ProviderName) -> bool:
        try:
            provider = self._resolve(name)
        except ProviderNotFoundError:
            return False
        return self._backends[provider].is_configured()

    def default_model_for(self, name: str | ProviderName) -> str:
        return self._backends[self._resolve(name)].default_model()

    def available_providers(self) -> list[ProviderName]:
        """Configured providers in enum order"""
        return [
            p for p in ProviderName if p in self._backends and self._backends[p].is_configured()
        ]

    def has_any_provider(self) -> bool:
        return bool(self.available_providers())

    def provider_configs(self) -> dict[ProviderName, ProviderConfig]:
        return {
            p: ProviderConfig(
                name=p,
                credential=self._backends[p].api_key,
                default_model=self._backends[p].default_model(),
                models=list(self._backends[p].catalog),
            )
            for p in ProviderName
            if p in self._backends
        }
