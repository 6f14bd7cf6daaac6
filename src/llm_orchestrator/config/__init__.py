"""Configuration management for the orchestrator."""

from .env_manager import EnvManager
from .schemas import OrchestratorConfig

__all__ = ["EnvManager", "OrchestratorConfig"]
