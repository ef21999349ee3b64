"""
Logging setup for JobPulse.

Console output is colored for interactive use; production runs (and any run
given a log file) also write rotating JSON lines. Two filters sit on every
handler:

- ContextFilter copies the fields bound with LogContext onto each record.
  Context is per thread, so a connection attempt on the main thread and the
  callback server's request threads never see each other's fields.
- RedactingFilter masks bearer tokens and OAuth secrets before a record is
  formatted, so provider URLs and headers can be logged as-is.
"""

import json
import logging
import logging.handlers
import os
import re
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jobpulse.constants import LOGS_DIR

LOG_LEVELS = {
    "development": logging.DEBUG,
    "production": logging.INFO,
    "testing": logging.WARNING,
}

MAX_CONSOLE_MESSAGE = 500
REDACTED = "[redacted]"

_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+", re.IGNORECASE),
    re.compile(r"([?&](?:code|state|token|access_token|refresh_token)=)[^&\s\"']+"),
)

_context = threading.local()


def _current_context() -> Dict[str, Any]:
    stack = getattr(_context, "stack", None)
    if not stack:
        return {}
    merged: Dict[str, Any] = {}
    for fields in stack:
        merged.update(fields)
    return merged


def redact(text: str) -> str:
    """Mask bearer tokens and OAuth query secrets in text."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + REDACTED, text)
    return text


class ContextFilter(logging.Filter):
    """Attach the calling thread's LogContext fields as record.extra_data."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _current_context()
        if context and not hasattr(record, "extra_data"):
            record.extra_data = context
        return True


class RedactingFilter(logging.Filter):
    """Rewrite the record's message with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log files and production consoles."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }
        context = getattr(record, "extra_data", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if len(message) > MAX_CONSOLE_MESSAGE:
            message = message[:MAX_CONSOLE_MESSAGE] + "..."

        context = getattr(record, "extra_data", None)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            message = f"{message} [{pairs}]"

        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:8}"
        if self.use_color:
            color = self.COLORS.get(record.levelname, self.RESET)
            level = f"{color}{level}{self.RESET}"
        line = f"[{timestamp}] {level} {record.name}: {message}"
        if record.exc_info:
            line = f"{line}\n{redact(self.formatException(record.exc_info))}"
        return line


def _install_filters(handler: logging.Handler) -> None:
    handler.addFilter(ContextFilter())
    handler.addFilter(RedactingFilter())


def setup_logging(
    level: Optional[str] = None,
    json_logs: bool = False,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Log level name; defaults by JOBPULSE_ENV
        json_logs: Format console output as JSON
        log_file: Rotating log file path; production runs default to
            logs/jobpulse.log

    Returns:
        The root logger
    """
    env = os.environ.get("JOBPULSE_ENV", "development")
    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        log_level = LOG_LEVELS.get(env, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    if json_logs:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(ConsoleFormatter(use_color=console_handler.stream.isatty()))
    _install_filters(console_handler)
    root_logger.addHandler(console_handler)

    if log_file or env == "production":
        if not log_file:
            LOGS_DIR.mkdir(exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file or str(LOGS_DIR / "jobpulse.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(JSONFormatter())
        _install_filters(file_handler)
        root_logger.addHandler(file_handler)

    # Provider traffic is logged by the clients themselves
    for noisy in ("urllib3", "requests", "werkzeug"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind fields to every record logged on this thread inside the block.

    Contexts nest; inner fields override outer ones of the same name.

    Example:
        with LogContext(provider="gmail"):
            logger.info("Starting OAuth connection")
    """

    def __init__(self, logger: Optional[logging.Logger] = None, **fields):
        self.logger = logger
        self.fields = fields

    def __enter__(self):
        stack = getattr(_context, "stack", None)
        if stack is None:
            stack = _context.stack = []
        stack.append(self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _context.stack.pop()
        if exc_type is not None and self.logger is not None:
            self.logger.debug(f"Leaving context after {exc_type.__name__}")
        return False
