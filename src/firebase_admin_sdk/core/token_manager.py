"""Shared access token lifecycle.

One ``TokenManager`` serves every service client of an app. It keeps the
current token, refreshes it ahead of expiry and guarantees that concurrent
callers share a single in-flight exchange.

State machine::

    UNINITIALIZED --> REFRESHING --> VALID
                          |  ^         |
                          v  |         | (refresh-ahead / forced)
                        FAILED <-------+

The check-and-transition into REFRESHING happens without an ``await`` in
between, so on one event loop there is never more than one refresh task.
Waiters go through ``asyncio.shield``: a cancelled waiter leaves the
exchange running for everyone else.
"""

from __future__ import annotations

import asyncio
import contextvars
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from ..errors import AuthError, TransientAuthError
from ..telemetry import get_logger

if TYPE_CHECKING:
    from ..config import TokenConfig
    from ..models import AccessToken
    from .token_source import TokenSource


class TokenState(StrEnum):
    """Token lifecycle states."""

    UNINITIALIZED = "uninitialized"
    REFRESHING = "refreshing"
    VALID = "valid"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenManager:
    """Lazily fetched, single-flight refreshed access token."""

    def __init__(
        self,
        source: TokenSource,
        config: TokenConfig,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize token manager. Performs no I/O.

        Args:
            source: Token source performing the actual exchange.
            config: Token lifecycle configuration.
            clock: Wall clock, overridable in tests.
        """
        self._source = source
        self._skew = config.expiry_skew
        self._refresh_ahead = config.refresh_ahead
        self._clock = clock
        self._logger = get_logger()

        self._state = TokenState.UNINITIALIZED
        self._token: AccessToken | None = None
        self._error: AuthError | None = None
        self._refresh_task: asyncio.Task[AccessToken] | None = None

    @property
    def state(self) -> TokenState:
        """Current lifecycle state."""
        return self._state

    @property
    def token(self) -> AccessToken | None:
        """Most recently obtained token, fresh or not."""
        return self._token

    @property
    def last_error(self) -> AuthError | None:
        """Error of the last failed exchange, cleared on success."""
        return self._error

    async def get_token(self) -> AccessToken:
        """Return a token valid for at least ``expiry_skew`` seconds.

        Inside the refresh-ahead window the current token is returned while a
        background exchange runs. Past the skew, callers wait for the exchange.

        Raises:
            AuthError: If the exchange this call waited on failed.
        """
        now = self._clock()
        token = self._token
        if token is not None and token.is_fresh(self._refresh_ahead, now):
            return token

        task = self._ensure_refresh()
        if token is not None and token.is_fresh(self._skew, now):
            return token
        return await asyncio.shield(task)

    async def force_refresh(self, rejected: AccessToken | None = None) -> AccessToken:
        """Obtain a token other than ``rejected``.

        If the current token already differs from the rejected one, someone
        else rotated it and it is returned as is. Otherwise a new exchange is
        started, or the in-flight one joined.

        Raises:
            AuthError: If the exchange failed.
        """
        current = self._token
        if (
            current is not None
            and rejected is not None
            and current.token != rejected.token
            and current.is_fresh(self._skew, self._clock())
        ):
            return current

        return await asyncio.shield(self._ensure_refresh())

    def _ensure_refresh(self) -> asyncio.Task[AccessToken]:
        loop = asyncio.get_running_loop()
        task = self._refresh_task
        if task is not None and not task.done() and task.get_loop() is loop:
            return task

        self._state = TokenState.REFRESHING
        # Fresh context: the exchange belongs to no single request.
        task = loop.create_task(
            self._refresh(), name="firebase-token-refresh", context=contextvars.Context()
        )
        task.add_done_callback(self._on_refresh_done)
        self._refresh_task = task
        return task

    async def _refresh(self) -> AccessToken:
        self._logger.debug("Refreshing access token", previous_state=str(self._state))
        try:
            token = await self._source.fetch_token()
        except AuthError as e:
            self._fail(e)
            raise
        except asyncio.CancelledError:
            self._fail(TransientAuthError("Token refresh cancelled"))
            raise
        except Exception as e:
            error = TransientAuthError(f"Token refresh failed: {e}", cause=e)
            self._fail(error)
            raise error from e

        if not token.is_fresh(self._skew, self._clock()):
            error = TransientAuthError(
                "Token endpoint issued a token that is already within the expiry skew; "
                "check the system clock"
            )
            self._fail(error)
            raise error

        self._token = token
        self._error = None
        self._state = TokenState.VALID
        self._logger.info(
            "Access token refreshed",
            expires_at=token.expires_at.isoformat(),
        )
        return token

    def _fail(self, error: AuthError) -> None:
        self._error = error
        self._state = TokenState.FAILED
        self._logger.warning(
            "Access token refresh failed",
            error=error.message,
            retryable=error.retryable,
        )

    @staticmethod
    def _on_refresh_done(task: asyncio.Task[AccessToken]) -> None:
        # Background refreshes may have no waiter; mark the exception retrieved.
        if not task.cancelled():
            task.exception()
