"""Application bootstrap sequence and dependency wiring."""

import logging
from collections.abc import Mapping
from pathlib import Path

from llm_orchestrator.agent.chat_orchestrator import ChatOrchestrator
from llm_orchestrator.config.env_manager import EnvManager
from llm_orchestrator.config.schemas import OrchestratorConfig
from llm_orchestrator.core.app_context import AppContext
from llm_orchestrator.core.protocols import IInteractionLogger, ISettingsStore
from llm_orchestrator.providers.provider_manager import ProviderRegistry
from llm_orchestrator.stores.interaction_log import (
    LoggingInteractionLogger,
    SqliteInteractionLogger,
)
from llm_orchestrator.stores.settings_store import YamlSettingsStore
from llm_orchestrator.utils.logging import get_logger, setup_logging

logger = get_logger("core.bootstrap")

DEFAULT_HOME = Path.home() / ".llm-orchestrator"
DEFAULT_SETTINGS_PATH = DEFAULT_HOME / "settings.yaml"


def _setup_environment(env_manager: EnvManager) -> None:
    """Load .env files; a broken file is reported but not fatal."""
    try:
        env_manager.load_env_files()
    except Exception as e:
        logger.warning(f"Failed to load .env files: {e}", exc_info=True)


def bootstrap(
    settings_path: str | Path | None = None,
    *,
    log_level: int | None = None,
    credentials: Mapping[str, str | None] | None = None,
    provider: str | None = None,
    interaction_db: str | Path | None = None,
    settings_store: ISettingsStore | None = None,
    interaction_logger: IInteractionLogger | None = None,
    config: OrchestratorConfig | None = None,
    env_manager: EnvManager | None = None,
) -> AppContext:
    """Initialize logging, configuration, stores, providers and the orchestrator.

    Args:
        settings_path: YAML settings file (default ``~/.llm-orchestrator/settings.yaml``)
        log_level: Override log level
        credentials: Explicit per-provider API keys, highest priority
        provider: Preferred provider when none is persisted
        interaction_db: SQLite file for the interaction log; logs to the
            application log when omitted
        settings_store: Pre-built store (for testing)
        interaction_logger: Pre-built interaction sink (for testing)
        config: Pre-built orchestrator config; ``LLMO_`` variables apply on top
        env_manager: Pre-built environment manager (for testing)

    Raises:
        RuntimeError: If application initialization fails
    """
    setup_logging(level=log_level or logging.INFO)

    try:
        logger.debug("Starting application bootstrap")

        env_manager = env_manager or EnvManager()
        _setup_environment(env_manager)

        config = env_manager.orchestrator_config(config)
        logger.debug("Configuration loaded", extra=config.model_dump(mode="json"))

        if settings_store is None:
            settings_store = YamlSettingsStore(settings_path or DEFAULT_SETTINGS_PATH)
        if interaction_logger is None:
            interaction_logger = (
                SqliteInteractionLogger(interaction_db)
                if interaction_db
                else LoggingInteractionLogger()
            )

        registry = ProviderRegistry(settings_store=settings_store)
        orchestrator = ChatOrchestrator(
            registry=registry,
            settings_store=settings_store,
            interaction_logger=interaction_logger,
            config=config,
        )
        orchestrator.initialize(credentials, provider=provider)

        ctx = AppContext(orchestrator=orchestrator)
        ctx.register("config", config)
        ctx.register("registry", registry)
        ctx.register("settings", settings_store)
        ctx.register("interactions", interaction_logger)
        ctx.register("env", env_manager)

        logger.info("Application bootstrap completed successfully")
        return ctx

    except Exception as e:
        logger.critical("Failed to bootstrap application", exc_info=True)
        raise RuntimeError("Failed to initialize application") from e
