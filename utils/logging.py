"""
Structured JSON logging for the bot.

Records are pushed through a bounded queue and written by a background
listener to the console, a daily-rotated log file and an error-only JSONL
file. Sync code passes ``extra={"guild_id": ..., "channel_id": ...,
"server": ..., "map": ...}`` so one channel's history can be grepped out of
a guild-wide update.
"""

import atexit
import json
import logging
import logging.handlers
import os
import queue
from pathlib import Path

from config.config_loader import ConfigLoader

# Extras copied into the JSON payload when a call site supplies them
CONTEXT_FIELDS = ("user_id", "guild_id", "channel_id", "command_name", "server", "map")

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = {"discord": logging.WARNING, "aiohttp.access": logging.WARNING}

ROTATION_BACKUPS = 30

_queue_listener: logging.handlers.QueueListener | None = None
_atexit_registered = False


class ErrorLevelFilter(logging.Filter):
    """Allow only error-or-higher log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        return record.levelno >= logging.ERROR


class CustomJsonFormatter(logging.Formatter):
    def __init__(self, datefmt: str | None = None) -> None:
        super().__init__(datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        record_dict = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.name,
            "funcName": record.funcName,
            "lineno": record.lineno,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                record_dict[name] = getattr(record, name)
        if record.exc_info:
            record_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(record_dict, ensure_ascii=False, default=str)


def _resolve_level(configured: str | None) -> int:
    name = (os.getenv("LOG_LEVEL") or configured or "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(log_file: str | None = None) -> None:
    """
    Route every logger through the JSON queue pipeline.

    Args:
        log_file: Path to the main log file. Defaults to ``logging.file`` from
            config.yaml, then "logs/bot.log". Errors also go to
            ``<log dir>/errors/errors.jsonl``.

    ``LOG_LEVEL`` in the environment overrides ``logging.level``. Calling this
    again replaces the previous handlers and listener.
    """
    global _queue_listener

    ConfigLoader.load_config()
    logging_config = ConfigLoader.section("logging")
    log_path = Path(log_file or logging_config.get("file") or "logs/bot.log")
    log_level = _resolve_level(logging_config.get("level"))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None

    (log_path.parent / "errors").mkdir(parents=True, exist_ok=True)

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=1000)
    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_handler.setLevel(log_level)
    root_logger.addHandler(queue_handler)

    _queue_listener = _build_queue_listener(log_queue, log_level, log_path)
    _queue_listener.start()
    _register_logging_shutdown()

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def _rotating_handler(path: Path, level: int) -> logging.handlers.TimedRotatingFileHandler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        interval=1,
        backupCount=ROTATION_BACKUPS,
        utc=True,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    return handler


def _build_queue_listener(
    log_queue: queue.Queue, log_level: int, log_path: Path
) -> logging.handlers.QueueListener:
    """Listener fanning queued records out to console, file and error file."""
    formatter = CustomJsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = _rotating_handler(log_path, log_level)

    error_handler = _rotating_handler(log_path.parent / "errors" / "errors.jsonl", logging.ERROR)
    error_handler.namer = _error_log_namer  # type: ignore[assignment]
    error_handler.addFilter(ErrorLevelFilter())

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)

    handlers = (file_handler, console_handler, error_handler)
    for handler in handlers:
        handler.setFormatter(formatter)

    return logging.handlers.QueueListener(log_queue, *handlers, respect_handler_level=True)


def _error_log_namer(default_name: str) -> str:
    """
    Rename rotated error files to the errors_YYYY-MM-DD.jsonl pattern.
    """

    # Default name: /path/errors.jsonl.YYYY-MM-DD
    base_without_suffix, date_part = default_name.rsplit(".", 1)
    return str(Path(base_without_suffix).with_name(f"errors_{date_part}.jsonl"))


def _register_logging_shutdown() -> None:
    """Stop the queue listener at interpreter exit so queued records are flushed."""

    global _atexit_registered

    if _atexit_registered:
        return

    def _shutdown_listener() -> None:
        global _queue_listener
        if _queue_listener:
            try:
                _queue_listener.stop()
            except Exception:
                # Handlers may already be closed at interpreter exit
                pass
            _queue_listener = None

    atexit.register(_shutdown_listener)
    _atexit_registered = True


def get_logger(name: str) -> logging.Logger:
    """
    Convenience method for retrieving a logger
    """
    return logging.getLogger(name)


# Setup logging when the module is imported
setup_logging()
