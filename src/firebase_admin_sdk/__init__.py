"""Firebase Admin SDK core: shared credentials, tokens and retries."""

from .app import FirebaseApp
from .config import AppConfig, RetryConfig, TelemetryConfig, TokenConfig
from .credentials import ServiceAccountKey
from .errors import (
    AuthError,
    ErrorCode,
    ExhaustedRetriesError,
    FirebaseError,
    InvalidConfigError,
    NetworkError,
    NonRetryableError,
    PermanentAuthError,
    PipelineError,
    RateLimitError,
    RequestCancelledError,
    RequestTimeoutError,
    ServerError,
    TransientAuthError,
)
from .models import AccessToken, ApiRequest
from .services import Service, ServiceClient
from .telemetry import configure_telemetry

__all__ = [
    "FirebaseApp",
    "AppConfig",
    "RetryConfig",
    "TelemetryConfig",
    "TokenConfig",
    "ServiceAccountKey",
    "AuthError",
    "ErrorCode",
    "ExhaustedRetriesError",
    "FirebaseError",
    "InvalidConfigError",
    "NetworkError",
    "NonRetryableError",
    "PermanentAuthError",
    "PipelineError",
    "RateLimitError",
    "RequestCancelledError",
    "RequestTimeoutError",
    "ServerError",
    "TransientAuthError",
    "AccessToken",
    "ApiRequest",
    "Service",
    "ServiceClient",
    "configure_telemetry",
]

__version__ = "0.1.0"
