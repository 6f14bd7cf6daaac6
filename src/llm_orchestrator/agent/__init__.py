from .chat_orchestrator import ChatOrchestrator, OrchestratorSession

__all__ = ["ChatOrchestrator", "OrchestratorSession"]
