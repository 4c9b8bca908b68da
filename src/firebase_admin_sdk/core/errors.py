"""Centralized error factory.

Provides consistent error creation for transport exceptions, HTTP responses
and terminal retry decisions.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from ..errors import (
    ExhaustedRetriesError,
    FirebaseError,
    NetworkError,
    NonRetryableError,
    PermanentAuthError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
)
from ..models import ServiceErrorResponse
from .retry_policy import GiveUpReason

if TYPE_CHECKING:
    from .retry_policy import Outcome


class ErrorFactory:
    """Centralized error creation with consistent structure.

    All errors created through this factory carry a correlation ID shared
    by every attempt of one logical request.
    """

    @staticmethod
    def generate_correlation_id() -> str:
        """Generate a unique correlation ID."""
        return str(uuid.uuid4())

    @staticmethod
    def service_message(response: httpx.Response, default: str) -> str:
        """Extract the service's error message from a JSON error body."""
        try:
            parsed = ServiceErrorResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            return f"{default}: {response.status_code}"
        return parsed.display_message()

    @staticmethod
    def from_exception(
        exc: Exception,
        *,
        correlation_id: str | None = None,
    ) -> FirebaseError:
        """Create SDK error from a transport exception.

        Args:
            exc: Original exception.
            correlation_id: Optional correlation ID for tracing.

        Returns:
            NetworkError or RequestTimeoutError. ``connect_failed`` is set
            when the request provably never reached the server.
        """
        if isinstance(exc, FirebaseError):
            if exc.correlation_id is None:
                exc.correlation_id = correlation_id
            return exc

        if isinstance(exc, httpx.TimeoutException):
            return RequestTimeoutError(
                f"Request timed out: {exc}",
                correlation_id=correlation_id,
                cause=exc,
                connect_failed=isinstance(exc, httpx.ConnectTimeout),
            )

        if isinstance(exc, httpx.ConnectError):
            return NetworkError(
                f"Connection failed: {exc}",
                correlation_id=correlation_id,
                cause=exc,
                connect_failed=True,
            )

        return NetworkError(
            f"HTTP error: {exc}",
            correlation_id=correlation_id,
            cause=exc,
        )

    @staticmethod
    def from_http_response(
        response: httpx.Response,
        *,
        retry_after: float | None = None,
        correlation_id: str | None = None,
    ) -> FirebaseError:
        """Create SDK error describing a failed attempt's response."""
        status = response.status_code
        if status == 429:
            return RateLimitError(
                ErrorFactory.service_message(response, "Rate limit exceeded"),
                retry_after=retry_after,
                correlation_id=correlation_id,
            )
        if status >= 500:
            return ServerError(
                ErrorFactory.service_message(response, "Server error"),
                status_code=status,
                correlation_id=correlation_id,
            )
        if status in (401, 403):
            return PermanentAuthError(
                ErrorFactory.service_message(response, "Request not authorized"),
                status_code=status,
                correlation_id=correlation_id,
            )
        return NonRetryableError(
            ErrorFactory.service_message(response, "Request failed"),
            status_code=status,
            response=response,
            correlation_id=correlation_id,
        )

    @staticmethod
    def from_outcome(
        outcome: Outcome,
        response: httpx.Response | None,
        *,
        correlation_id: str | None = None,
    ) -> FirebaseError:
        """Error for whatever the last attempt produced."""
        if outcome.error is not None:
            return ErrorFactory.from_exception(outcome.error, correlation_id=correlation_id)
        if response is not None:
            return ErrorFactory.from_http_response(
                response,
                retry_after=outcome.retry_after,
                correlation_id=correlation_id,
            )
        return NetworkError("Request failed", correlation_id=correlation_id)

    @staticmethod
    def for_give_up(
        reason: GiveUpReason,
        outcome: Outcome,
        response: httpx.Response | None,
        *,
        attempts: int,
        correlation_id: str | None = None,
    ) -> FirebaseError:
        """Terminal error for a non-success give-up decision.

        Args:
            reason: Why the policy stopped retrying.
            outcome: Outcome of the final attempt.
            response: Final response, if one was received.
            attempts: Number of attempts made.
            correlation_id: Correlation ID of the logical request.
        """
        last = ErrorFactory.from_outcome(outcome, response, correlation_id=correlation_id)

        if reason is GiveUpReason.EXHAUSTED:
            return ExhaustedRetriesError(
                f"Gave up after {attempts} attempt(s): {last.message}",
                last_error=last,
                attempts=attempts,
                correlation_id=correlation_id,
            )

        if reason is GiveUpReason.AUTH_REJECTED:
            details: dict[str, Any] = {"attempts": attempts}
            return PermanentAuthError(
                f"Request rejected after forced token refresh: {last.message}",
                status_code=outcome.status_code,
                correlation_id=correlation_id,
                details=details,
            )

        if isinstance(last, NonRetryableError):
            return last

        return NonRetryableError(
            f"Request is not retry-safe: {last.message}",
            status_code=last.status_code,
            response=response,
            cause=last,
            correlation_id=correlation_id,
            details={"reason": str(reason), "attempts": attempts},
        )
