"""Structured logging for eventrelay."""

import logging
import json
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from enum import Enum

from eventrelay.core.secrets import redact_text


class LogLevel(str, Enum):
    """Log levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL
}


class StructuredLogger:
    """
    Structured logger for the relay.

    Outputs one JSON object per line so log-query tooling can assert on
    individual fields. Every line is passed through :func:`redact_text`
    before it reaches a handler, so callback URL tokens never appear in
    cleartext even if a call site forgets to redact.
    """

    def __init__(
        self,
        name: str,
        level: LogLevel = LogLevel.INFO,
        extra_fields: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            level: Logging level
            extra_fields: Additional fields to include in all logs
        """
        self.name = name
        self.level = level
        self.extra_fields = extra_fields or {}
        self._logger = logging.getLogger(name)
        self._configure_logger()

    def _configure_logger(self) -> None:
        """Configure the underlying logger."""
        self._logger.setLevel(_LEVELS[self.level])

        if not any(isinstance(h.formatter, JSONFormatter) for h in self._logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self._logger.addHandler(handler)

    def _log(
        self,
        level: LogLevel,
        message: str,
        **kwargs: Any
    ) -> None:
        """
        Internal logging method.

        Args:
            level: Log level
            message: Log message
            **kwargs: Additional fields
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.value,
            "logger": self.name,
            "message": message,
            **self.extra_fields,
            **kwargs
        }

        self._logger.log(_LEVELS[level], redact_text(json.dumps(log_data, default=str)))

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self._log(LogLevel.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        """Log critical message."""
        self._log(LogLevel.CRITICAL, message, **kwargs)

    def log_attempt(
        self,
        candidate: str,
        attempt: int,
        status: int,
        **kwargs: Any
    ) -> None:
        """
        Log one POST to a forwarding target.

        Args:
            candidate: Candidate label
            attempt: 1-based attempt number
            status: HTTP status, 0 when no response was received
            **kwargs: Additional fields
        """
        self.info(
            "Forward attempt",
            candidate=candidate,
            attempt=attempt,
            status=status,
            **kwargs
        )


class JSONFormatter(logging.Formatter):
    """Formatter that passes through pre-rendered JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        # The message is already JSON from StructuredLogger
        return record.getMessage()


class RedactingFilter(logging.Filter):
    """
    Redacts callback URL tokens in records from third-party loggers.

    The message and its arguments are redacted separately so formatters
    that read ``record.args`` directly (uvicorn's access formatter) still
    get the original tuple shape.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, tuple):
            record.args = tuple(_redact_arg(arg) for arg in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: _redact_arg(value) for key, value in record.args.items()}

        if isinstance(record.msg, str) and redact_text(record.msg) != record.msg:
            # Token in the format string itself, e.g. "?sig=%s"
            record.msg = redact_text(record.getMessage())
            record.args = ()
        return True


def _redact_arg(arg: Any) -> Any:
    if isinstance(arg, (int, float)):
        return arg
    text = str(arg)
    redacted = redact_text(text)
    # Non-string args (httpx.URL) are only replaced when they held a token
    if redacted != text or isinstance(arg, str):
        return redacted
    return arg


# Libraries that log full request URLs
THIRD_PARTY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "uvicorn.error")


def install_redaction(*logger_names: str) -> None:
    """
    Attach a :class:`RedactingFilter` to the named loggers.

    Defaults to the HTTP client and server loggers. Safe to call repeatedly.
    """
    for name in logger_names or THIRD_PARTY_LOGGERS:
        target = logging.getLogger(name)
        if not any(isinstance(f, RedactingFilter) for f in target.filters):
            target.addFilter(RedactingFilter())


def get_logger(
    name: str,
    level: LogLevel = LogLevel.INFO,
    **extra_fields: Any
) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name
        level: Logging level
        **extra_fields: Additional fields to include in all logs

    Returns:
        Structured logger instance
    """
    return StructuredLogger(name, level, extra_fields)
