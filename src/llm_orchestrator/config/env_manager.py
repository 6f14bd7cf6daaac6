"""Environment variable management for the orchestrator."""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv, set_key

from llm_orchestrator.config.schemas import OrchestratorConfig
from llm_orchestrator.core.exceptions import ConfigError
from llm_orchestrator.utils.logging import get_logger

logger = get_logger("config.env_manager")


class EnvManager:
    """Loads .env files and reads ``LLMO_``-prefixed orchestrator tunables.

    Vendor credentials and model overrides keep their unprefixed names
    (``GROQ_API_KEY``, ``GEMINI_MODEL``); they are read by the backends.
    """

    def __init__(self, env_prefix: str = "LLMO_", env_paths: list[Path] | None = None):
        self.env_prefix = env_prefix
        self.env_paths = env_paths or self._get_default_env_paths()

    def _get_default_env_paths(self) -> list[Path]:
        return [Path.cwd() / ".env", Path.cwd() / ".env.local"]

    def load_env_files(self) -> list[Path]:
        """Load the configured .env files; later files override earlier ones.

        Raises:
            ConfigError: If a .env file exists but cannot be loaded
        """
        loaded: list[Path] = []
        for env_path in self.env_paths:
            if not env_path.exists():
                continue
            try:
                load_dotenv(env_path, override=bool(loaded))
            except Exception as e:
                raise ConfigError(f"Failed to load .env file {env_path}: {e}") from e
            logger.info(f"Loaded environment variables from {env_path}")
            loaded.append(env_path)

        if not loaded:
            logger.debug("No .env files found to load")
        return loaded

    def get_config_from_env(self) -> dict[str, Any]:
        """Prefixed variables as a flat dict, e.g. ``LLMO_RATE_LIMIT_BACKOFF=0.5``
        becomes ``{"rate_limit_backoff": 0.5}``.
        """
        config_data = {
            key[len(self.env_prefix) :].lower(): self._convert_env_value(value)
            for key, value in os.environ.items()
            if key.startswith(self.env_prefix)
        }
        if config_data:
            logger.debug(
                f"Loaded {len(config_data)} environment variables with prefix '{self.env_prefix}'"
            )
        return config_data

    def orchestrator_config(self, base: OrchestratorConfig | None = None) -> OrchestratorConfig:
        """Apply environment tunables on top of ``base``.

        Raises:
            ConfigError: If a tunable has an invalid value
        """
        base = base or OrchestratorConfig()
        known = set(OrchestratorConfig.model_fields)
        overrides = {k: v for k, v in self.get_config_from_env().items() if k in known}
        try:
            return base.with_overrides(**overrides)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    def _convert_env_value(self, value: str) -> Any:
        """Convert a string value to bool, int, float, None or leave it as-is."""
        if value.lower() in ("true", "false"):
            return value.lower() == "true"

        try:
            if "." not in value and "e" not in value.lower():
                return int(value)
            return float(value)
        except ValueError:
            pass

        return None if value.lower() in ("null", "none") else value

    def get_env_path(self, filename: str = ".env.local") -> Path:
        for path in self.env_paths:
            if path.name == filename:
                return path
        return Path.cwd() / filename

    def save_to_env_file(
        self,
        key: str,
        value: str,
        env_path: Path | None = None,
        quote_mode: str = "never",
    ) -> Path:
        """Write ``key=value`` into an env file and the current process."""
        if env_path is None:
            env_path = self.get_env_path()

        env_path.parent.mkdir(parents=True, exist_ok=True)
        set_key(env_path, key, value, quote_mode=quote_mode)
        os.environ[key] = value
        logger.info(f"Saved {key} to {env_path}")
        return env_path
