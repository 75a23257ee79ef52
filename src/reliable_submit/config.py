"""Configuration module for the reliable submission protocol.

This module provides two immutable configuration classes: ServerConfig for
the outcome simulator and its HTTP surface, and ClientConfig for the
submission client and status poller.

Example:
    Basic usage with defaults:

        >>> config = ClientConfig()
        >>> config.max_retries
        3

    Forcing every submission down the delayed path:

        >>> config = ServerConfig(success_threshold=0.0, failure_threshold=0.0)

    Loading from environment:

        >>> import os
        >>> os.environ['RELIABLE_SUBMIT_CLIENT_MAX_RETRIES'] = '5'
        >>> config = ClientConfig.from_env()
        >>> config.max_retries
        5
"""

import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from reliable_submit.observability.logging import LOG_LEVELS


def _load_env(prefix: str, field_types: dict[str, type]) -> dict[str, Any]:
    """Collect prefixed environment variables for the given fields."""
    config_dict: dict[str, Any] = {}

    for field_name, field_type in field_types.items():
        env_var = f"{prefix}{field_name.upper()}"
        env_value = os.environ.get(env_var)

        if env_value is not None:
            if field_type is int:
                config_dict[field_name] = int(env_value)
            elif field_type is float:
                config_dict[field_name] = float(env_value)
            elif field_type is bool:
                config_dict[field_name] = env_value.strip().lower() in ("1", "true", "yes", "on")
            else:
                config_dict[field_name] = env_value

    return config_dict


class ServerConfig(BaseModel):
    """Configuration for the outcome simulator and the mock service.

    Attributes:
        success_threshold: Draws below this value succeed immediately.
        failure_threshold: Draws below this value (and not below
            success_threshold) fail transiently. Draws at or above it become
            delayed successes, so that bucket absorbs any rounding remainder.
        min_delay_ms: Lower bound (inclusive) of the delayed-success delay.
        max_delay_ms: Upper bound (exclusive) of the delayed-success delay.
        retry_after_seconds: Retry hint carried in 503 bodies.
        host: Interface the demo server binds to.
        port: Port the demo server listens on.
        log_level: Log level for structured logging.
        json_logs: Emit JSON logs if True, console logs otherwise.

    Note:
        This class is immutable (frozen=True).
    """

    success_threshold: float = Field(
        default=0.33,
        description="Uniform draws below this value succeed immediately",
    )
    failure_threshold: float = Field(
        default=0.66,
        description="Uniform draws below this value fail transiently",
    )
    min_delay_ms: int = Field(
        default=5000,
        description="Minimum delayed-success completion delay in milliseconds",
    )
    max_delay_ms: int = Field(
        default=10000,
        description="Maximum (exclusive) delayed-success completion delay in milliseconds",
    )
    retry_after_seconds: int = Field(
        default=1,
        description="Retry hint returned with transient failures",
    )
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3001)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)

    model_config = {"frozen": True}

    @field_validator("success_threshold", "failure_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Validate a probability threshold lies in [0, 1].

        Raises:
            ValueError: If the threshold is outside [0, 1].
        """
        if not (0.0 <= v <= 1.0):
            raise ValueError(f"thresholds must be between 0 and 1, got {v}")
        return v

    @field_validator("min_delay_ms", "retry_after_seconds")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"value must be >= 0, got {v}")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not (1 <= v <= 65535):
            raise ValueError(f"port must be between 1 and 65535, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Valid levels are: {', '.join(LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def validate_ranges(self) -> "ServerConfig":
        """Validate that thresholds and delay bounds are ordered.

        Raises:
            ValueError: If success_threshold > failure_threshold or
                min_delay_ms >= max_delay_ms.
        """
        if self.success_threshold > self.failure_threshold:
            raise ValueError(
                "success_threshold must not exceed failure_threshold, "
                f"got {self.success_threshold} > {self.failure_threshold}"
            )
        if self.min_delay_ms >= self.max_delay_ms:
            raise ValueError(
                f"min_delay_ms must be below max_delay_ms, "
                f"got {self.min_delay_ms} >= {self.max_delay_ms}"
            )
        return self

    @classmethod
    def from_env(cls, prefix: str = "RELIABLE_SUBMIT_SERVER_") -> "ServerConfig":
        """Create configuration from environment variables.

        Variable names are the uppercase field names with the prefix, e.g.
        ``RELIABLE_SUBMIT_SERVER_PORT=8080``. Missing variables keep their
        defaults.
        """
        field_types = {
            "success_threshold": float,
            "failure_threshold": float,
            "min_delay_ms": int,
            "max_delay_ms": int,
            "retry_after_seconds": int,
            "host": str,
            "port": int,
            "log_level": str,
            "json_logs": bool,
        }
        return cls(**_load_env(prefix, field_types))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "ServerConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)


class ClientConfig(BaseModel):
    """Configuration for the submission client and status poller.

    Attributes:
        base_url: Root URL of the submission service.
        request_timeout_seconds: Per-request HTTP timeout.
        max_retries: Retries allowed after transient failures (not counting
            the initial attempt).
        base_delay_ms: Backoff base; the wait before retry n is
            ``base_delay_ms * 2 ** (n - 1)``.
        poll_interval_ms: Delay between status polls.
        max_initial_poll_wait_ms: Cap on the wait before the first poll.
        extra_polls: Polls allowed beyond the estimated delay.
        default_estimated_delay_ms: Used when a 202 omits estimatedDelay.
        poll_exhaustion_policy: What an exhausted poll budget resolves to
            when every query was answered. "optimistic" reports success,
            "strict" reports an error.

    Note:
        This class is immutable (frozen=True).
    """

    base_url: str = Field(default="http://localhost:3001")
    request_timeout_seconds: float = Field(default=10.0)
    max_retries: int = Field(default=3)
    base_delay_ms: int = Field(default=1000)
    poll_interval_ms: int = Field(default=1000)
    max_initial_poll_wait_ms: int = Field(default=3000)
    extra_polls: int = Field(default=5)
    default_estimated_delay_ms: int = Field(default=8000)
    poll_exhaustion_policy: Literal["optimistic", "strict"] = Field(
        default="optimistic",
        description="Resolution of an exhausted poll budget whose queries all succeeded",
    )

    model_config = {"frozen": True}

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {v!r}")
        return v.rstrip("/")

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"request_timeout_seconds must be > 0, got {v}")
        return v

    @field_validator(
        "max_retries",
        "base_delay_ms",
        "max_initial_poll_wait_ms",
        "extra_polls",
        "default_estimated_delay_ms",
    )
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"value must be >= 0, got {v}")
        return v

    @field_validator("poll_interval_ms")
    @classmethod
    def validate_poll_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"poll_interval_ms must be > 0, got {v}")
        return v

    @classmethod
    def from_env(cls, prefix: str = "RELIABLE_SUBMIT_CLIENT_") -> "ClientConfig":
        """Create configuration from environment variables.

        Variable names are the uppercase field names with the prefix, e.g.
        ``RELIABLE_SUBMIT_CLIENT_BASE_URL=http://svc:3001``.
        """
        field_types = {
            "base_url": str,
            "request_timeout_seconds": float,
            "max_retries": int,
            "base_delay_ms": int,
            "poll_interval_ms": int,
            "max_initial_poll_wait_ms": int,
            "extra_polls": int,
            "default_estimated_delay_ms": int,
            "poll_exhaustion_policy": str,
        }
        return cls(**_load_env(prefix, field_types))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "ClientConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)
