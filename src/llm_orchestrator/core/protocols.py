"""Protocols (interfaces) for the orchestrator's external collaborators.

The settings store and the interaction log live outside the orchestration
core. These protocols pin down the narrow surface the core relies on so any
persistence layer can be plugged in.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ISettingsStore(Protocol):
    """Key/value store for credentials and the current provider selection.

    Implementations may raise when the backing storage is unavailable; callers
    in the core treat such failures as "no value" (degraded mode).
    """

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for ``key`` or ``default``."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Persist ``value`` under ``key``."""
        ...


@runtime_checkable
class IInteractionLogger(Protocol):
    """Fire-and-forget sink for chat interactions keyed by agent id."""

    def log(
        self,
        agent_id: str,
        kind: str,
        input_payload: dict[str, Any],
        output_payload: dict[str, Any],
        context: str = "",
        success: bool = True,
    ) -> Any:
        """Record one interaction. May return an awaitable."""
        ...
