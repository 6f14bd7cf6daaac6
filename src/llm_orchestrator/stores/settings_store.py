"""
Settings stores for persisted credentials and provider selection
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from llm_orchestrator.core.exceptions import StoreError
from llm_orchestrator.core.protocols import ISettingsStore
from llm_orchestrator.utils.logging import get_logger

logger = get_logger("stores.settings")


class InMemorySettingsStore:
    """Dict-backed store, used by tests and one-shot CLI runs."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._values: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


class YamlSettingsStore:
    """Settings persisted as a flat mapping in a YAML file.

    The file is read on every ``get`` so edits made by another process are
    picked up; ``set`` rewrites the whole file.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StoreError(f"Failed to read settings from {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreError(f"Invalid settings format in {self.path}")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
        except OSError as e:
            raise StoreError(f"Failed to write settings to {self.path}: {e}") from e


def read_setting(store: ISettingsStore | None, key: str, default: Any = None) -> Any:
    """Read ``key`` from ``store``, treating any store failure as "no value"."""
    if store is None:
        return default
    try:
        value = store.get(key)
    except Exception as e:
        logger.debug(f"Settings read failed for '{key}': {e}")
        return default
    return default if value in (None, "") else value


def write_setting(store: ISettingsStore | None, key: str, value: Any) -> bool:
    """Best-effort persist; returns whether the write went through."""
    if store is None:
        return False
    try:
        store.set(key, value)
    except Exception as e:
        logger.debug(f"Settings write failed for '{key}': {e}")
        return False
    return True
