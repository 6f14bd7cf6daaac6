"""LLM Orchestrator - multi-provider chat with retry and fallback."""

__version__ = "0.1.0"
