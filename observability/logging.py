"""Logging for concurrent digest runs.

Several runs can share one worker process, so each record is stamped with
the run it belongs to (the first eight characters of the digest id) and
the recipient:

    10:30:01 [INFO] [3f2a9c1e] [user-42] pipeline: Candidates gathered | count=25

The pipeline calls :func:`set_run_context` when a run starts and
:func:`clear_context` when it ends. Both are contextvars, so asyncio tasks
spawned inside a run inherit them.
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from typing import Any

LOG_FILE_NAME = "murmur.log"
NO_CONTEXT = "-"

NOISY_LOGGERS = ("aiohttp", "httpx", "httpcore", "openai", "anthropic", "redis", "asyncio")

run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default=NO_CONTEXT)
user_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("user_id", default=NO_CONTEXT)

# Names present on every LogRecord; other attributes arrived via ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message", "asctime", "run_id", "user_id", "taskName",
}


def set_run_context(run_id: str, user_id: str = NO_CONTEXT) -> None:
    run_id_var.set(run_id)
    user_id_var.set(user_id)


def clear_context() -> None:
    set_run_context(NO_CONTEXT, NO_CONTEXT)


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_var.get()
        record.user_id = user_id_var.get()
        return True


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Warnings and errors also carry a ``source`` block; ``extra=`` fields are
    copied to the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", NO_CONTEXT),
        }
        user_id = getattr(record, "user_id", NO_CONTEXT)
        if user_id != NO_CONTEXT:
            entry["user_id"] = user_id
        if record.levelno >= logging.WARNING:
            entry["source"] = {"file": record.filename, "line": record.lineno, "function": record.funcName}
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (key, _jsonable(value))
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
        )
        return json.dumps(entry, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    def __init__(self, include_date: bool = False):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] [%(run_id)s] [%(user_id)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S" if include_date else "%H:%M:%S",
        )


def _log_file_handler(config: Any) -> logging.Handler:
    """Rotating handler for LOG_DIR/murmur.log; raises OSError if unwritable."""
    config.log_dir.mkdir(parents=True, exist_ok=True)
    path = config.log_dir / LOG_FILE_NAME
    with open(path, "a", encoding="utf-8"):
        pass

    if config.log_max_bytes > 0:
        return RotatingFileHandler(
            path, maxBytes=config.log_max_bytes, backupCount=config.log_backup_count, encoding="utf-8"
        )
    return TimedRotatingFileHandler(
        path, when="midnight", backupCount=config.log_backup_count, encoding="utf-8"
    )


def setup_logging(config: Any, verbose: bool = False) -> bool:
    """Replace root handlers with a console handler and, when possible, a file.

    ``verbose`` forces DEBUG on the console; the file always gets DEBUG.
    Returns False when the log directory is unusable and only the console
    is logging.
    """
    as_json = config.log_format == "json"
    context_filter = ContextFilter()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO))
    console.setFormatter(JsonFormatter() if as_json else TextFormatter())
    console.addFilter(context_filter)
    root.addHandler(console)

    try:
        file_handler = _log_file_handler(config)
    except OSError as e:
        print(f"Warning: log directory '{config.log_dir}' is not writable ({e}); logging to console only",
              file=sys.stderr)
        file_logging = False
    else:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JsonFormatter() if as_json else TextFormatter(include_date=True))
        file_handler.addFilter(context_filter)
        root.addHandler(file_handler)
        file_logging = True

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return file_logging
