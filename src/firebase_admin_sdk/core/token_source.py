"""Service account token exchange.

Implements the OAuth 2.0 JWT bearer grant (RFC 7523): a short assertion is
signed with the service account key and traded at the token endpoint for an
access token.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Protocol

import httpx
import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from ..errors import PermanentAuthError, TransientAuthError
from ..models import AccessToken, TokenResponse
from ..telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

    from ..config import TokenConfig
    from ..credentials import ServiceAccountKey

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class TokenSource(Protocol):
    """Anything that can mint a new access token."""

    async def fetch_token(self) -> AccessToken:
        """Perform one token exchange."""
        ...


class ServiceAccountTokenSource:
    """Mints access tokens from a service account key."""

    def __init__(
        self,
        credential: ServiceAccountKey,
        http: httpx.AsyncClient,
        config: TokenConfig,
    ) -> None:
        """Initialize token source.

        Args:
            credential: Service account key, shared by reference.
            http: Transport used for the token endpoint.
            config: Token lifecycle configuration.
        """
        self.credential = credential
        self.config = config
        self._http = http
        self._signing_key: PrivateKeyTypes | None = None
        self._logger = get_logger()

    def _load_signing_key(self) -> PrivateKeyTypes:
        if self._signing_key is None:
            pem = self.credential.private_key.get_secret_value().encode()
            try:
                self._signing_key = serialization.load_pem_private_key(pem, password=None)
            except (ValueError, TypeError, UnsupportedAlgorithm) as e:
                raise PermanentAuthError(
                    "Service account private key could not be loaded",
                    details={"client_email": self.credential.client_email},
                ) from e
        return self._signing_key

    def build_assertion(self, *, now: int | None = None) -> str:
        """Build the signed JWT assertion.

        Raises:
            PermanentAuthError: If the key cannot sign.
        """
        issued_at = now if now is not None else int(time.time())
        claims: dict[str, Any] = {
            "iss": self.credential.client_email,
            "scope": self.config.scope_string,
            "aud": self.credential.token_endpoint,
            "iat": issued_at,
            "exp": issued_at + self.config.lifetime,
        }
        headers = {"kid": self.credential.private_key_id} if self.credential.private_key_id else None
        try:
            return jwt.encode(claims, self._load_signing_key(), algorithm="RS256", headers=headers)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise PermanentAuthError(f"Failed to sign token assertion: {e}") from e

    async def fetch_token(self) -> AccessToken:
        """Exchange a fresh assertion for an access token.

        Returns:
            New access token.

        Raises:
            TransientAuthError: Network failure, 429 or 5xx, malformed response.
            PermanentAuthError: Credential rejected or unusable.
        """
        endpoint = self.credential.token_endpoint
        with trace_operation("firebase.token_exchange", attributes={"token.endpoint": endpoint}):
            assertion = self.build_assertion()
            try:
                response = await self._http.post(
                    endpoint,
                    data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            except httpx.RequestError as e:
                raise TransientAuthError(
                    f"Token endpoint unreachable: {e}", cause=e
                ) from e

            status = response.status_code
            if status == 429 or status >= 500:
                raise TransientAuthError(
                    f"Token endpoint returned {status}", status_code=status
                )
            if status >= 400:
                raise PermanentAuthError(
                    f"Token endpoint rejected credential: {status}",
                    status_code=status,
                    details=_oauth_error_details(response),
                )

            try:
                parsed = TokenResponse.model_validate(response.json())
            except ValueError as e:
                raise TransientAuthError("Malformed token response", cause=e) from e

        self._logger.debug(
            "Token exchange succeeded",
            client_email=self.credential.client_email,
            expires_in=parsed.expires_in,
        )
        return AccessToken.from_response(parsed)


def _oauth_error_details(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    if not isinstance(body, dict):
        return {}
    return {
        "error": body.get("error"),
        "error_description": body.get("error_description"),
    }
