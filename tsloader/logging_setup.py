"""
JSONL logging bootstrap.
Installs a single JSONL sink for resolver/loader diagnostics and, on
request, a rich console handler for warnings.
"""

import json
import logging
from datetime import UTC
from datetime import datetime
from pathlib import Path

from rich.logging import RichHandler

# LogRecord attributes that are not user-supplied extras
_RECORD_ATTRIBUTES = frozenset(
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
        "name",
        "taskName",
    }
)


class JsonlHandler(logging.Handler):
    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            base = {
                "ts": datetime.now(UTC).isoformat(timespec="milliseconds"),
                "lvl": record.levelname,
                "schema": {"name": "tsloader.log", "ver": "1.0.0"},
                "logger": record.name,
                "message": record.getMessage(),
            }
            if record.exc_info:
                base["exc"] = logging.Formatter().formatException(record.exc_info)
            for k, v in record.__dict__.items():
                if k in _RECORD_ATTRIBUTES:
                    continue
                base.setdefault(k, v)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(base, ensure_ascii=False, default=str) + "\n")
        except Exception:
            self.handleError(record)


def init_logging(path: str, level: str = "INFO", console: bool = False) -> None:
    """Attach the JSONL sink (and optionally a console handler) to the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    # Remove existing handlers of the same kind to avoid duplicates
    for h in list(root.handlers):
        if isinstance(h, JsonlHandler | RichHandler):
            root.removeHandler(h)
    root.addHandler(JsonlHandler(path))
    if console:
        console_handler = RichHandler(show_time=False, show_path=False)
        console_handler.setLevel(logging.WARNING)
        root.addHandler(console_handler)
