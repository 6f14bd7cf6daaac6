import logging
import sys
from typing import TextIO

LEVEL_EMOJI = {
    "DEBUG": "🐞",
    "INFO": "💡",
    "WARNING": "⚠️",
    "ERROR": "🔥",
    "CRITICAL": "💀",
}

# Attributes every LogRecord carries; anything else came in through `extra=`.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord(
        name="",
        level=logging.NOTSET,
        pathname="",
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    ).__dict__
) | {"message", "asctime"}

# Extras that must never reach the console.
_REDACTED_FIELDS = frozenset({"api_key", "credential", "secret"})


class EmojiFormatter(logging.Formatter):
    """Console formatter: level emoji, subsystem name and `extra=` fields."""

    def format(self, record: logging.LogRecord) -> str:
        emoji = LEVEL_EMOJI.get(record.levelname, "")
        line = f"{emoji} [{record.levelname:<8}] ({record.name}) {record.getMessage()}"

        extras = {
            key: ("***" if key in _REDACTED_FIELDS else value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }
        if extras:
            rendered = " ".join(f"{key}={value!r}" for key, value in extras.items())
            line = f"{line} | {rendered}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: int = logging.INFO, stream: TextIO | None = None) -> None:
    """Install the emoji formatter on the root logger, replacing prior handlers."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(EmojiFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a subsystem logger, e.g. ``get_logger("providers.registry")``."""
    return logging.getLogger(name)
