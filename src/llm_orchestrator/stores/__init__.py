"""
Settings stores and interaction log sinks
"""

from .interaction_log import LoggingInteractionLogger, SqliteInteractionLogger
from .settings_store import (
    InMemorySettingsStore,
    YamlSettingsStore,
    read_setting,
    write_setting,
)

__all__ = [
    "InMemorySettingsStore",
    "LoggingInteractionLogger",
    "SqliteInteractionLogger",
    "YamlSettingsStore",
    "read_setting",
    "write_setting",
]
