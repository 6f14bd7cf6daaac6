"""CLI command groups."""

from . import chat, provider

__all__ = ["chat", "provider"]
