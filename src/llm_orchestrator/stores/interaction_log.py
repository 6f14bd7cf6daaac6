"""Interaction log sinks.

Every chat carrying an ``agent_id`` is reported once: the successful
response, or the final failure. The orchestrator never waits on these sinks
and ignores their errors, so implementations are free to be slow or flaky.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from llm_orchestrator.core.exceptions import StoreError
from llm_orchestrator.utils.logging import get_logger

logger = get_logger("stores.interactions")


class LoggingInteractionLogger:
    """Writes interactions to the application log."""

    def __init__(self, logger_name: str = "interactions"):
        self._logger = get_logger(logger_name)
        self.count = 0

    def log(
        self,
        agent_id: str,
        kind: str,
        input_payload: dict[str, Any],
        output_payload: dict[str, Any],
        context: str = "",
        success: bool = True,
    ) -> None:
        self.count += 1
        self._logger.info(
            f"{kind} interaction recorded",
            extra={
                "agent_id": agent_id,
                "success": success,
                "context": context,
                "provider": output_payload.get("provider"),
            },
        )


CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS agent_interactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    agent_id TEXT NOT NULL,
    kind TEXT NOT NULL,
    input_payload TEXT NOT NULL,
    output_payload TEXT NOT NULL,
    context TEXT NOT NULL DEFAULT '',
    success INTEGER NOT NULL,
    created_at TEXT NOT NULL
)
"""


class SqliteInteractionLogger:
    """SQLite-backed interaction log.

    Payloads are stored as JSON text; timestamps as ISO8601 UTC strings.
    Writes may arrive from worker threads; one lock serializes connection use.
    A ``":memory:"`` path keeps everything in a single in-process database.
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.execute(CREATE_TABLE_SQL)
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open interaction log {self.db_path}: {e}") from e

    def log(
        self,
        agent_id: str,
        kind: str,
        input_payload: dict[str, Any],
        output_payload: dict[str, Any],
        context: str = "",
        success: bool = True,
    ) -> None:
        row = (
            agent_id,
            kind,
            json.dumps(input_payload, default=str),
            json.dumps(output_payload, default=str),
            context,
            1 if success else 0,
            datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            self.conn.execute(
                """
                INSERT INTO agent_interactions(agent_id, kind, input_payload, output_payload, context, success, created_at)
                VALUES(?, ?, ?, ?, ?, ?, ?)
                """,
                row,
            )
            self.conn.commit()

    def fetch(self, agent_id: str) -> list[dict[str, Any]]:
        """Return the interactions of one agent, oldest first."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT kind, input_payload, output_payload, context, success, created_at "
                "FROM agent_interactions WHERE agent_id = ? ORDER BY id",
                (agent_id,),
            ).fetchall()
        return [
            {
                "kind": kind,
                "input": json.loads(input_payload),
                "output": json.loads(output_payload),
                "context": context,
                "success": bool(success),
                "created_at": created_at,
            }
            for kind, input_payload, output_payload, context, success, created_at in rows
        ]

    def close(self) -> None:
        with self._lock:
            self.conn.close()
