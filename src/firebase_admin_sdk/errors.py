"""Error classes for the Firebase Admin SDK core.

Structured error hierarchy with error codes and correlation IDs. Every
failure inside the auth and retry layers surfaces as one of these types.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx


class ErrorCode(StrEnum):
    """Standardized error codes."""

    # Authentication errors (1xxx)
    AUTH_TRANSIENT = "AUTH_1001"
    AUTH_PERMANENT = "AUTH_1002"

    # Configuration errors (2xxx)
    INVALID_CONFIG = "CFG_2001"
    INVALID_CREDENTIAL = "CFG_2002"

    # Network errors (3xxx)
    NETWORK_ERROR = "NET_3001"
    TIMEOUT_ERROR = "NET_3002"

    # Rate limiting (4xxx)
    RATE_LIMITED = "RATE_4001"

    # Server errors (5xxx)
    SERVER_ERROR = "SRV_5001"

    # Pipeline errors (6xxx)
    EXHAUSTED_RETRIES = "PIPE_6001"
    NON_RETRYABLE = "PIPE_6002"
    CANCELLED = "PIPE_6003"


class FirebaseError(Exception):
    """Base error for the SDK with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = str(code)
        self.status_code = status_code
        self.correlation_id = correlation_id
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        """Whether retrying the failed operation can succeed."""
        return False

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "correlation_id": self.correlation_id,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class AuthError(FirebaseError):
    """Obtaining an access token failed."""


class TransientAuthError(AuthError):
    """Token exchange failed for a reason that may clear up on retry."""

    def __init__(
        self,
        message: str = "Token exchange failed",
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.AUTH_TRANSIENT,
            status_code=status_code,
            correlation_id=correlation_id,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause

    @property
    def retryable(self) -> bool:
        return True


class PermanentAuthError(AuthError):
    """Credential rejected, revoked or malformed. Never retried."""

    def __init__(
        self,
        message: str = "Credential rejected",
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.AUTH_PERMANENT,
            status_code=status_code,
            correlation_id=correlation_id,
            details=details,
        )


class InvalidConfigError(FirebaseError):
    """Invalid SDK configuration or credential data."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        code: ErrorCode = ErrorCode.INVALID_CONFIG,
    ) -> None:
        super().__init__(
            message,
            code,
            details={"field": field} if field else None,
        )


class NetworkError(FirebaseError):
    """Network request failed before a response was received."""

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        correlation_id: str | None = None,
        cause: Exception | None = None,
        connect_failed: bool = False,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.NETWORK_ERROR,
            correlation_id=correlation_id,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause
        self.connect_failed = connect_failed

    @property
    def retryable(self) -> bool:
        return True


class RequestTimeoutError(NetworkError):
    """A single attempt timed out at the transport level."""

    def __init__(
        self,
        message: str = "Request timed out",
        *,
        correlation_id: str | None = None,
        cause: Exception | None = None,
        connect_failed: bool = False,
    ) -> None:
        super().__init__(
            message,
            correlation_id=correlation_id,
            cause=cause,
            connect_failed=connect_failed,
        )
        self.code = ErrorCode.TIMEOUT_ERROR.value
        self.status_code = 408


class RateLimitError(FirebaseError):
    """Rate limit exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.RATE_LIMITED,
            status_code=429,
            correlation_id=correlation_id,
            details={"retry_after": retry_after} if retry_after is not None else None,
        )
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return True


class ServerError(FirebaseError):
    """Server-side error."""

    def __init__(
        self,
        message: str = "Server error",
        *,
        status_code: int = 500,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.SERVER_ERROR,
            status_code=status_code,
            correlation_id=correlation_id,
        )

    @property
    def retryable(self) -> bool:
        return True


class PipelineError(FirebaseError):
    """Terminal outcome of a logical request."""


class ExhaustedRetriesError(PipelineError):
    """Retry budget consumed without success."""

    def __init__(
        self,
        message: str = "Retry budget exhausted",
        *,
        last_error: FirebaseError | None = None,
        attempts: int = 0,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.EXHAUSTED_RETRIES,
            status_code=last_error.status_code if last_error else None,
            correlation_id=correlation_id,
            details={
                "attempts": attempts,
                "last_error": last_error.to_dict() if last_error else None,
            },
        )
        self.last_error = last_error
        self.attempts = attempts
        self.__cause__ = last_error


class NonRetryableError(PipelineError):
    """The request failed in a way retrying cannot fix."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response: httpx.Response | None = None,
        cause: FirebaseError | None = None,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.NON_RETRYABLE,
            status_code=status_code,
            correlation_id=correlation_id,
            details=details,
        )
        self.response = response
        self.__cause__ = cause


class RequestCancelledError(PipelineError):
    """The caller's deadline elapsed before the request completed."""

    def __init__(
        self,
        message: str = "Request deadline exceeded",
        *,
        deadline: float | None = None,
        attempts: int = 0,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.CANCELLED,
            correlation_id=correlation_id,
            details={"deadline": deadline, "attempts": attempts},
        )
        self.deadline = deadline
        self.attempts = attempts
