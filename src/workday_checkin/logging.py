"""Logging setup for the check-in daemon.

Loguru and stdlib loggers both feed a single queue. A listener thread drains
it into the console and, when LOG_FILE is set, a size-rotated file, so slow
disk writes never stall the scheduler's event loop.
"""

import atexit
import logging
import queue
import re
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path

from loguru import logger

from workday_checkin.config.settings import settings

LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-5s | %(name)s | %(message)s"
LOG_DATEFMT = "%H:%M:%S"

# Libraries that log every routine step at INFO
QUIET_LOGGERS = ("apscheduler",)

_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024**2, "gb": 1024**3}
_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmg]?b)?\s*$", re.IGNORECASE)

_listener: QueueListener | None = None


def parse_size(value: str, default: int = 10 * 1024**2) -> int:
    """Turn "10 MB" / "512kb" / "2048" into a byte count."""
    match = _SIZE_RE.match(value)
    if not match:
        return default
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[(unit or "b").lower()])


def parse_backup_count(value: str, default: int = 7) -> int:
    """Number of rotated files to keep; "7 days" keeps 7."""
    match = re.search(r"\d+", value)
    return max(1, int(match.group())) if match else default


def _build_handlers(level: str, file_path: str | Path | None, rotation: str, retention: str):
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler(sys.stdout)
    handlers: list[logging.Handler] = [console]

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=parse_size(rotation),
                backupCount=parse_backup_count(retention),
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
    return handlers


def _forward_to_stdlib(message) -> None:
    """Loguru sink that re-emits records on the stdlib logger of the same name."""
    record = message.record
    exc = record["exception"]
    exc_info = (exc.type, exc.value, exc.traceback) if exc else None
    logging.getLogger(record["name"]).log(record["level"].no, record["message"], exc_info=exc_info)


def configure_logging(
    log_level: str | None = None,
    log_file: str | Path | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Route all logging through a background queue listener.

    Safe to call more than once; the previous listener is stopped first.

    Args:
        log_level: Minimum level. Defaults to settings.LOG_LEVEL.
        log_file: Optional log file. Defaults to settings.LOG_FILE.
        rotation: Maximum file size before rotating (e.g. "10 MB").
        retention: Rotated files to keep (e.g. "7 days" keeps 7).
    """
    global _listener

    level = (log_level or settings.LOG_LEVEL).upper()
    handlers = _build_handlers(level, log_file or settings.LOG_FILE, rotation, retention)

    log_queue: queue.SimpleQueue = queue.SimpleQueue()
    root = logging.getLogger()
    root.handlers = [QueueHandler(log_queue)]
    root.setLevel(level)

    shutdown_logging()
    _listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _listener.start()

    logger.remove()
    logger.add(_forward_to_stdlib, level=level, backtrace=True, diagnose=False)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def shutdown_logging() -> None:
    """Drain queued records and stop the listener thread."""
    global _listener

    if _listener is not None:
        _listener.stop()
        _listener = None


atexit.register(shutdown_logging)


_CONTEXT_LABELS = {
    "component": "SYS",
    "date": "DATE",
    "half": "HALF",
    "kind": "KIND",
    "reason": "REASON",
    "state": "STATE",
    "decision": "DECISION",
    "attempt": "ATTEMPT",
}


def format_log_context(kind: str, /, **fields: object) -> str:
    """
    Build a ``KEY=value`` prefix for a log line.

    Example:
        >>> format_log_context("reminder_sent", component="scheduler", date="2025-03-04", half="morning")
        'SYS=scheduler DATE=2025-03-04 HALF=morning | reminder_sent'
    """
    # SYS always leads so lines group by subsystem when grepped
    ordered = sorted(fields.items(), key=lambda item: item[0] != "component")
    parts = [
        f"{_CONTEXT_LABELS.get(key, key.upper())}={value}"
        for key, value in ordered
        if value is not None and value != ""
    ]
    if not parts:
        return str(kind)
    return f"{' '.join(parts)} | {kind}"


__all__ = ["configure_logging", "format_log_context", "logger", "shutdown_logging"]
