class OrchestratorError(Exception):
    """Base exception for all orchestrator errors.

    The message is automatically prefixed with the subsystem name in square brackets.
    """

    subsystem = "core"

    def __init__(self, message: str, *, subsystem: str | None = None) -> None:
        self.subsystem = subsystem or self.subsystem
        super().__init__(f"[{self.subsystem}] {message}")


# ─── Subsystem-level exceptions ───────────────────────────────────────────────


class LLMError(OrchestratorError):
    """Raised for issues with LLM communication, provider selection or fallback."""

    subsystem = "llm"


class ConfigError(OrchestratorError):
    """Raised for configuration loading or parsing errors."""

    subsystem = "config"


class StoreError(OrchestratorError):
    """Raised when a settings store or interaction log cannot be opened."""

    subsystem = "store"


class CLIError(OrchestratorError):
    """Raised for CLI-specific logic or user input issues."""

    subsystem = "cli"
