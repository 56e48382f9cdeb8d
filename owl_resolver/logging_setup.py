"""
Logging bootstrap for owl-resolver.
Console output goes through Rich on stderr; an optional JSONL sink keeps a
structured record of cache rebuilds and resolutions.
"""

import json
import logging
import os
from datetime import UTC
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_PATH = os.environ.get("OWL_LOG_PATH")
DEFAULT_LEVEL = os.environ.get("OWL_LOG_LEVEL", "WARNING").upper()
LOGGER_NAME = "owl_resolver"

_RESERVED_ATTRS = frozenset(
    {
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "name",
        "message",
    }
)


class JsonlHandler(logging.Handler):
    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def build_payload(self, record: logging.LogRecord) -> dict:
        base = {
            "ts": datetime.now(UTC).isoformat(timespec="milliseconds"),
            "lvl": record.levelname,
            "schema": {"name": "owl_resolver.log", "ver": "1.0.0"},
            "logger": record.name,
            "event": getattr(record, "event", None),
            "message": record.getMessage(),
        }
        if isinstance(record.msg, dict):
            base.update(record.msg)
        for k, v in record.__dict__.items():
            if k in _RESERVED_ATTRS:
                continue
            base.setdefault(k, v)
        return base

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(self.build_payload(record), ensure_ascii=False, default=str)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except Exception:
            self.handleError(record)


def init_logging(path: str | None = None, level: str | None = None, console: Console | None = None) -> logging.Logger:
    """Configure the package logger. Safe to call more than once."""
    path = path or DEFAULT_PATH
    level = (level or DEFAULT_LEVEL).upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level, logging.WARNING))

    # Replace our own handlers rather than stacking duplicates
    for h in list(logger.handlers):
        if isinstance(h, (JsonlHandler, RichHandler)):
            logger.removeHandler(h)

    logger.addHandler(
        RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            markup=False,
            rich_tracebacks=False,
        )
    )
    if path:
        logger.addHandler(JsonlHandler(path))
    return logger
