"""
eventrelay core - configuration, errors, secrets and metrics.
"""

from eventrelay.core.exceptions import (
    RelayError,
    ErrorCode,
    ConfigurationError,
    ConfigValidationError,
    NoCandidatesError,
    ForwardingError,
    ForwardingNetworkError,
)

from eventrelay.core.secrets import (
    CallbackUrl,
    redact_url,
    redact_text,
)

from eventrelay.core.config import (
    RelayConfig,
    is_unset,
    get_config,
    reset_config,
)

from eventrelay.core.observability import MetricsCollector

__all__ = [
    # Exceptions
    "RelayError",
    "ErrorCode",
    "ConfigurationError",
    "ConfigValidationError",
    "NoCandidatesError",
    "ForwardingError",
    "ForwardingNetworkError",

    # Secrets
    "CallbackUrl",
    "redact_url",
    "redact_text",

    # Configuration
    "RelayConfig",
    "is_unset",
    "get_config",
    "reset_config",

    # Observability
    "MetricsCollector",
]
