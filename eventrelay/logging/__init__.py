"""Logging package."""

from eventrelay.logging.logger import (
    StructuredLogger,
    RedactingFilter,
    get_logger,
    install_redaction,
    LogLevel,
)

__all__ = ["StructuredLogger", "RedactingFilter", "get_logger", "install_redaction", "LogLevel"]
