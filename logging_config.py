"""
Logging configuration for the Data Graph Bot.

Records go to the console in a readable form and to two size-rotated JSON
files: ``datagraph-bot.log`` with everything from DEBUG up, and
``datagraph-bot-errors.log`` with errors only. Context such as ``user_id``,
``request_id`` or ``duration_ms`` is passed through ``extra=`` and ends up as
top-level JSON fields.

aiogram's own logger is attached to the same handlers at WARNING so polling
failures land in the error log next to ours.
"""

import json
import logging
import logging.handlers
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path

LOGGER_NAME = "datagraph-bot"
LOG_FILE = "datagraph-bot.log"
ERROR_LOG_FILE = "datagraph-bot-errors.log"

# Loggers of libraries whose warnings we want in our files
LIBRARY_LOGGERS = ("aiogram",)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
})


def _exception_fields(exc_info) -> dict:
    exc_type, exc_value, _ = exc_info
    return {
        "type": exc_type.__name__ if exc_type else None,
        "message": str(exc_value) if exc_value else None,
        "traceback": traceback.format_exception(*exc_info),
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, extras included as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "timestamp": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = _exception_fields(record.exc_info)

        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS
        )
        # Metric names are often non-ASCII; keep them readable in the file
        return json.dumps(entry, ensure_ascii=False, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Console formatter."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


def _rotating_json_handler(path: Path, level: int, max_bytes: int, backup_count: int):
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    return handler


def _replace_handlers(logger: logging.Logger, handlers: list) -> None:
    for old in logger.handlers:
        old.close()
    logger.handlers = list(handlers)


def setup_logging(
    log_dir: str = "/app/logs",
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
    log_level: str = "INFO"
) -> logging.Logger:
    """
    Configure the application logger. Safe to call more than once.

    Args:
        log_dir: Directory for the log files, created if missing
        max_bytes: Size at which a log file is rotated
        backup_count: Rotated files kept per log
        log_level: Level name for the application logger (case-insensitive)

    Returns:
        The ``datagraph-bot`` logger
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(HumanReadableFormatter())

    handlers = [
        console,
        _rotating_json_handler(log_path / LOG_FILE, logging.DEBUG, max_bytes, backup_count),
        _rotating_json_handler(log_path / ERROR_LOG_FILE, logging.ERROR, max_bytes, backup_count),
    ]

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper()))
    _replace_handlers(logger, handlers)

    for name in LIBRARY_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.setLevel(logging.WARNING)
        library_logger.propagate = False
        # Shared handler objects; closing is left to the application logger
        library_logger.handlers = list(handlers)

    logger.info(
        "Logging system initialized",
        extra={"log_dir": str(log_dir), "log_level": log_level.upper()}
    )
    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)
