"""Configuration for the Firebase Admin SDK.

Uses Pydantic v2 for validation with sensible defaults. All models are
frozen so a single configuration can be shared by every service client.
"""

from __future__ import annotations

import random
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_SCOPES = (
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/firebase",
)


class RetryConfig(BaseModel):
    """Retry configuration with exponential backoff."""

    model_config = ConfigDict(frozen=True)

    # Total attempts per logical request, the first one included.
    max_attempts: Annotated[int, Field(ge=1, le=20)] = 4
    initial_delay: Annotated[float, Field(ge=0, le=60)] = 1.0
    max_delay: Annotated[float, Field(gt=0, le=300)] = 30.0
    exponential_base: Annotated[float, Field(ge=1.0, le=3.0)] = 2.0
    jitter: Annotated[float, Field(ge=0, le=1.0)] = 0.1
    max_elapsed: Annotated[float, Field(gt=0, le=3600)] = 60.0

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt with exponential backoff."""
        delay = min(
            self.initial_delay * (self.exponential_base**attempt),
            self.max_delay,
        )
        # Add jitter to prevent thundering herd
        jitter_range = delay * self.jitter
        return max(0.0, delay + random.uniform(-jitter_range, jitter_range))  # noqa: S311


class TokenConfig(BaseModel):
    """Access token lifecycle configuration."""

    model_config = ConfigDict(frozen=True)

    scopes: tuple[str, ...] = DEFAULT_SCOPES
    # Seconds before expiry after which a token is never handed out.
    expiry_skew: Annotated[float, Field(ge=0, le=600)] = 60.0
    # Seconds before expiry at which a background refresh starts.
    refresh_ahead: Annotated[float, Field(ge=0, le=1800)] = 300.0
    lifetime: Annotated[int, Field(gt=0, le=3600)] = 3600

    @model_validator(mode="after")
    def check_windows(self) -> Self:
        """Refresh-ahead window must cover the expiry skew."""
        if self.refresh_ahead < self.expiry_skew:
            msg = "refresh_ahead must be >= expiry_skew"
            raise ValueError(msg)
        if not self.scopes:
            msg = "at least one OAuth scope is required"
            raise ValueError(msg)
        return self

    @property
    def scope_string(self) -> str:
        """Get scopes as space-separated string."""
        return " ".join(self.scopes)


class TelemetryConfig(BaseModel):
    """OpenTelemetry configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "firebase-admin-sdk"
    trace_requests: bool = True
    log_level: str = "INFO"


class AppConfig(BaseModel):
    """Main configuration shared by every client derived from one app."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    # HTTP settings
    timeout: Annotated[float, Field(gt=0, le=300)] = 30.0
    connect_timeout: Annotated[float, Field(gt=0, le=60)] = 10.0
    user_agent: str = "firebase-admin-sdk/0.1.0 Python"

    # Sub-configurations
    retry: RetryConfig = Field(default_factory=RetryConfig)
    token: TokenConfig = Field(default_factory=TokenConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    def with_overrides(self, **kwargs: Any) -> Self:
        """Create new config with overridden values."""
        data = self.model_dump()
        data.update(kwargs)
        return self.__class__(**data)

    @classmethod
    def from_env(cls, prefix: str = "FIREBASE_") -> Self:
        """Create config from environment variables."""
        import os

        def get_env(key: str, default: Any = None) -> Any:
            return os.environ.get(f"{prefix}{key}", default)

        retry = RetryConfig(
            max_attempts=int(get_env("MAX_ATTEMPTS", "4")),
            initial_delay=float(get_env("INITIAL_DELAY", "1.0")),
            max_delay=float(get_env("MAX_DELAY", "30.0")),
            max_elapsed=float(get_env("MAX_ELAPSED", "60.0")),
        )
        token = TokenConfig(
            expiry_skew=float(get_env("TOKEN_EXPIRY_SKEW", "60.0")),
            refresh_ahead=float(get_env("TOKEN_REFRESH_AHEAD", "300.0")),
        )
        telemetry = TelemetryConfig(
            enabled=get_env("TELEMETRY_ENABLED", "true").lower() == "true",
            log_level=get_env("LOG_LEVEL", "INFO"),
        )

        return cls(
            timeout=float(get_env("TIMEOUT", "30.0")),
            connect_timeout=float(get_env("CONNECT_TIMEOUT", "10.0")),
            retry=retry,
            token=token,
            telemetry=telemetry,
        )
