"""Application context holding the wired-up orchestrator and its collaborators."""

from typing import Any, TypeVar

from llm_orchestrator.agent.chat_orchestrator import ChatOrchestrator

T = TypeVar("T")


class AppContext:
    """Named resources created by :func:`~llm_orchestrator.core.bootstrap.bootstrap`."""

    def __init__(self, orchestrator: ChatOrchestrator | None = None) -> None:
        self._resources: dict[str, Any] = {}
        if orchestrator is not None:
            self.register("orchestrator", orchestrator)

    @property
    def orchestrator(self) -> ChatOrchestrator:
        """The chat orchestrator.

        Raises:
            RuntimeError: If bootstrap did not register one
        """
        orchestrator = self.get_typed("orchestrator", ChatOrchestrator)
        if orchestrator is None:
            raise RuntimeError("Orchestrator not initialized. Did you call bootstrap()?")
        return orchestrator

    def register(self, name: str, resource: Any) -> None:
        self._resources[name] = resource

    def get(self, name: str, default: Any = None) -> Any | None:
        return self._resources.get(name, default)

    def get_typed(
        self, name: str, expected_type: type[T], default: T | None = None
    ) -> T | None:
        """Retrieve a resource, or ``default`` when missing or of another type."""
        resource = self._resources.get(name)
        if not isinstance(resource, expected_type):
            return default
        return resource

    def __getitem__(self, name: str) -> Any:
        return self._resources[name]

    def __contains__(self, name: str) -> bool:
        return name in self._resources
