"""Core functionality: exceptions, collaborator protocols and bootstrap.

``AppContext`` and ``bootstrap`` live in submodules that import the provider
layer, which itself depends on this package; import them from
``llm_orchestrator.core.bootstrap`` directly.
"""

from .exceptions import CLIError, ConfigError, LLMError, OrchestratorError, StoreError

__all__ = ["CLIError", "ConfigError", "LLMError", "OrchestratorError", "StoreError"]
