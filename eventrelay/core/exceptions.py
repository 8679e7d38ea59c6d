"""
Exception hierarchy for eventrelay.

Every error carries a machine-readable code so log queries can group
failures without parsing messages.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for monitoring and alerting."""

    # Configuration errors (1xxx)
    CONFIG_INVALID = "E1001"
    CONFIG_MISSING = "E1002"
    CONFIG_VALIDATION_FAILED = "E1003"

    # Forwarding errors (8xxx)
    FORWARD_NETWORK_EXHAUSTED = "E8002"


class RelayError(Exception):
    """
    Base exception for all eventrelay errors.

    Provides:
    - Error code for monitoring
    - Context for debugging
    - Wrapped cause
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """
        Initialize relay error.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            context: Additional context for debugging
            cause: Original exception if this is a wrapped error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.error_code.value,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None
        }

    def __str__(self) -> str:
        """String representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# Configuration Errors
class ConfigurationError(RelayError):
    """Configuration-related errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONFIG_INVALID, context)


class ConfigValidationError(RelayError):
    """Configuration validation errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONFIG_VALIDATION_FAILED, context)


class NoCandidatesError(ConfigurationError):
    """No forwarding target is configured."""

    def __init__(self):
        super().__init__("No forwarding target configured")
        self.error_code = ErrorCode.CONFIG_MISSING


# Forwarding Errors
class ForwardingError(RelayError):
    """Base class for forwarding errors."""
    pass


class ForwardingNetworkError(ForwardingError):
    """
    Every attempt against one target failed before a response arrived.

    Distinct from a final non-2xx status, which is returned as a normal
    result rather than raised.
    """

    def __init__(
        self,
        attempts: int,
        last_result: Optional[Any] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(
            f"Forwarding failed after {attempts} attempts: {cause!r}",
            ErrorCode.FORWARD_NETWORK_EXHAUSTED,
            {"attempts": attempts},
            cause
        )
        self.attempts = attempts
        self.last_result = last_result
