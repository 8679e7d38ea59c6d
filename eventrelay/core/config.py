"""
Configuration management for eventrelay.

Features:
- Type-safe configuration with validation
- Environment and .env based configuration
- Optional YAML configuration file
- Secret callback URLs never rendered in cleartext
"""

from typing import Optional, Dict, Any
from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from functools import lru_cache
import logging

import yaml

from eventrelay.core.exceptions import ConfigurationError, ConfigValidationError
from eventrelay.core.secrets import redact_url
from eventrelay.errors.retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("eventrelay.yaml")

# Values an operator may put in a URL slot to mean "not configured"
UNSET_SENTINELS = frozenset({"", "none", "null", "unset", "disabled", "-"})


def is_unset(value: Optional[SecretStr]) -> bool:
    """Whether a URL slot is absent or holds an unset sentinel."""
    if value is None:
        return True
    return value.get_secret_value().strip().lower() in UNSET_SENTINELS


class RelayConfig(BaseSettings):
    """
    eventrelay configuration.

    Immutable once constructed. Built once at process start and passed
    into the pipeline.

    Loads configuration from:
    1. Constructor arguments / configuration file (eventrelay.yaml)
    2. Environment variables
    3. .env file
    4. Defaults
    """

    # Forwarding targets
    stable_url: Optional[SecretStr] = Field(
        None,
        validation_alias=AliasChoices("stable_url", "LOGICAPP_CALLBACK_URL"),
        description="Stable (active) downstream callback URL"
    )
    canary_url: Optional[SecretStr] = Field(
        None,
        validation_alias=AliasChoices("canary_url", "LOGICAPP_CALLBACK_URL_NEXT"),
        description="Canary (next) downstream callback URL, tried first"
    )
    fallback_enabled: bool = Field(
        True,
        validation_alias=AliasChoices("fallback_enabled", "FORWARD_FALLBACK_ENABLED"),
        description="Fall through from canary to stable on failure"
    )

    # Retry policy
    max_attempts: int = Field(
        4, ge=1,
        validation_alias=AliasChoices("max_attempts", "FORWARD_MAX_ATTEMPTS"),
        description="Attempts per target"
    )
    base_delay_ms: int = Field(
        500, ge=1,
        validation_alias=AliasChoices("base_delay_ms", "FORWARD_BASE_DELAY_MS"),
        description="Initial backoff"
    )
    max_delay_ms: int = Field(
        8000, ge=1,
        validation_alias=AliasChoices("max_delay_ms", "FORWARD_MAX_DELAY_MS"),
        description="Backoff ceiling"
    )
    timeout_seconds: float = Field(
        30.0, gt=0, le=300,
        validation_alias=AliasChoices("timeout_seconds", "FORWARD_TIMEOUT_SECONDS"),
        description="Per-request network timeout"
    )

    # Response shaping
    include_forwarded_body: bool = Field(
        False,
        validation_alias=AliasChoices("include_forwarded_body", "FORWARD_INCLUDE_BODY"),
        description="Echo the truncated downstream response body"
    )

    # Logging
    log_level: str = Field(
        "INFO",
        validation_alias=AliasChoices("log_level", "EVENTRELAY_LOG_LEVEL"),
        description="Logging level"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v.upper()

    @classmethod
    def load_from_file(cls, config_path: Path) -> "RelayConfig":
        """
        Load configuration from YAML file.

        Values in the file take precedence over the environment.

        Args:
            config_path: Path to configuration file

        Returns:
            RelayConfig instance

        Raises:
            ConfigurationError: If file cannot be loaded
            ConfigValidationError: If values are invalid
        """
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                {"path": str(config_path)}
            )

        try:
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {e}",
                {"path": str(config_path)}
            )

        if not config_data:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ConfigurationError(
                "Configuration file must contain a mapping",
                {"path": str(config_path)}
            )

        return cls.create(**config_data)

    @classmethod
    def create(cls, **values: Any) -> "RelayConfig":
        """
        Build and validate a configuration.

        Raises:
            ConfigValidationError: If any value is invalid
        """
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigValidationError(
                "Configuration validation failed",
                {"errors": [
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in e.errors()
                ]}
            ) from e

    def retry_policy(self) -> RetryPolicy:
        """Retry policy applied to each forwarding target."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms
        )

    def summary(self) -> Dict[str, Any]:
        """
        Configuration as a dictionary safe to display or log.

        Callback URLs are redacted; unset slots are reported as None.
        """
        def url(value: Optional[SecretStr]) -> Optional[str]:
            if is_unset(value):
                return None
            return redact_url(value.get_secret_value())

        return {
            "stable_url": url(self.stable_url),
            "canary_url": url(self.canary_url),
            "fallback_enabled": self.fallback_enabled,
            "max_attempts": self.max_attempts,
            "base_delay_ms": self.base_delay_ms,
            "max_delay_ms": self.max_delay_ms,
            "timeout_seconds": self.timeout_seconds,
            "include_forwarded_body": self.include_forwarded_body,
            "log_level": self.log_level,
        }


@lru_cache(maxsize=1)
def get_config() -> RelayConfig:
    """
    Get process-wide configuration instance (singleton).

    Returns:
        RelayConfig instance
    """
    if DEFAULT_CONFIG_FILE.exists():
        config = RelayConfig.load_from_file(DEFAULT_CONFIG_FILE)
    else:
        config = RelayConfig.create()

    logger.info(f"Configuration loaded: {config.summary()}")
    return config


def reset_config() -> None:
    """Reset global configuration (for testing)."""
    get_config.cache_clear()
