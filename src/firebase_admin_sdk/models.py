"""Pydantic models for the Firebase Admin SDK core.

Uses Pydantic v2 with frozen models for immutability.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})


class TokenResponse(BaseModel):
    """OAuth 2.0 token response from the token endpoint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1)
    token_type: str = Field(default="Bearer")
    expires_in: Annotated[int, Field(gt=0)]


class AccessToken(BaseModel):
    """Short-lived bearer token with expiration tracking."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(..., min_length=1, repr=False)
    token_type: str = "Bearer"
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def from_response(
        cls,
        response: TokenResponse,
        *,
        issued_at: datetime | None = None,
    ) -> Self:
        """Create AccessToken from TokenResponse with expiration calculation."""
        issued_at = issued_at or datetime.now(UTC)
        return cls(
            token=response.access_token,
            token_type=response.token_type,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=response.expires_in),
        )

    def remaining(self, now: datetime | None = None) -> float:
        """Seconds left until the token expires."""
        return (self.expires_at - (now or datetime.now(UTC))).total_seconds()

    def is_fresh(self, skew: float, now: datetime | None = None) -> bool:
        """True while ``now < expires_at - skew``."""
        return self.remaining(now) > skew

    @property
    def authorization(self) -> str:
        """Value for the Authorization header."""
        return f"Bearer {self.token}"


class ServiceErrorDetails(BaseModel):
    """Error object returned by the platform APIs."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    code: int
    message: str
    status: str | None = None
    errors: list[dict[str, Any]] | None = None


class ServiceErrorResponse(BaseModel):
    """JSON error envelope: ``{"error": {"code", "message", "status"}}``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    error: ServiceErrorDetails

    def display_message(self) -> str:
        """Human readable summary."""
        return f"{self.error.message} (code: {self.error.code})"


class ApiRequest(BaseModel):
    """Logical request handed to the pipeline by a service client.

    The pipeline builds a fresh transport request from it on every attempt
    so a retry never carries a stale Authorization header.
    """

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str
    params: dict[str, Any] | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    json_body: Any = None
    content: bytes | None = None
    data: dict[str, Any] | None = None

    @property
    def idempotent_by_method(self) -> bool:
        """Retry safety implied by the HTTP method alone."""
        return self.method.upper() in IDEMPOTENT_METHODS
