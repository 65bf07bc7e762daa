"""
Structured logging for the bot.

Every record is rendered as one JSON object. Records go through a
QueueHandler so the event loop never blocks on disk I/O; a QueueListener
thread fans them out to:

    logs/bot.log                  daily rotation, configured level
    logs/errors/errors.jsonl      daily rotation, ERROR and above
    stderr                        configured level

configure_logging() is called once by bot.main(); importing this module has
no side effects.
"""

import atexit
import json
import logging
import logging.handlers
import queue
from pathlib import Path
from typing import Any

from config.config_loader import ConfigLoader

# Lifted out of ``extra=`` (see utils.log_context.log_extra)
CONTEXT_FIELDS = ("guild_id", "user_id", "channel_id", "owner_id")

ROTATION_BACKUPS = 30
QUEUE_SIZE = 1000
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_listener: logging.handlers.QueueListener | None = None
_atexit_hooked = False


class JsonLogFormatter(logging.Formatter):
    """Render a record as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.name,
            "funcName": record.funcName,
            "lineno": record.lineno,
            "message": record.getMessage(),
        }

        # Countdown timers run as named tasks (tempvoice.delete.<channel id>)
        task_name = getattr(record, "taskName", None)
        if task_name:
            payload["task"] = task_name

        payload.update(
            (name, getattr(record, name)) for name in CONTEXT_FIELDS if hasattr(record, name)
        )

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


def _daily_file_handler(path: Path, level: int) -> logging.handlers.TimedRotatingFileHandler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=ROTATION_BACKUPS,
        utc=True,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    return handler


def dated_error_log_name(default_name: str) -> str:
    """errors.jsonl.2024-05-01 -> errors_2024-05-01.jsonl"""
    stem, date_part = default_name.rsplit(".", 1)
    return str(Path(stem).with_name(f"errors_{date_part}.jsonl"))


def _resolve_level(level: str | None) -> int:
    if level is None:
        logging_cfg = ConfigLoader.load_config().get("logging") or {}
        level = logging_cfg.get("level", "INFO")
    return getattr(logging, str(level).upper(), logging.INFO)


def configure_logging(log_dir: str = "logs", level: str | None = None) -> None:
    """
    Route all logging through a background queue listener.

    Args:
        log_dir: Directory for bot.log and errors/errors.jsonl
        level: Level name; defaults to ``logging.level`` from config.yaml
    """
    global _listener

    log_level = _resolve_level(level)
    stop_logging()

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(log_level)

    errors_dir = Path(log_dir) / "errors"
    errors_dir.mkdir(parents=True, exist_ok=True)

    main_file = _daily_file_handler(Path(log_dir) / "bot.log", log_level)
    error_file = _daily_file_handler(errors_dir / "errors.jsonl", logging.ERROR)
    error_file.namer = dated_error_log_name  # type: ignore[assignment]
    console = logging.StreamHandler()
    console.setLevel(log_level)

    formatter = JsonLogFormatter(datefmt=DATE_FORMAT)
    sinks = (main_file, error_file, console)
    for sink in sinks:
        sink.setFormatter(formatter)

    records: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=QUEUE_SIZE)
    queue_handler = logging.handlers.QueueHandler(records)
    queue_handler.setLevel(log_level)
    root.addHandler(queue_handler)

    _listener = logging.handlers.QueueListener(records, *sinks, respect_handler_level=True)
    _listener.start()
    _hook_atexit()

    # discord.py is chatty at INFO (gateway heartbeats, resumes)
    logging.getLogger("discord").setLevel(logging.WARNING)


def stop_logging() -> None:
    """Flush and stop the queue listener, if one is running."""
    global _listener
    if _listener is not None:
        _listener.stop()
        _listener = None


def _hook_atexit() -> None:
    global _atexit_hooked
    if not _atexit_hooked:
        atexit.register(stop_logging)
        _atexit_hooked = True


def get_logger(name: str) -> logging.Logger:
    """
    Convenience method for retrieving a logger
    """
    return logging.getLogger(name)
