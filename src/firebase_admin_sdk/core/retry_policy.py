"""Retry classification and backoff decisions.

``RetryPolicy.decide`` is a pure function of the per-request
``RetryContext`` and the outcome of the latest attempt. The pipeline owns
the context and applies the decision.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from ..errors import FirebaseError, NetworkError

if TYPE_CHECKING:
    import httpx

    from ..config import RetryConfig


class Classification(StrEnum):
    """What kind of result an attempt produced."""

    SUCCESS = "success"
    TRANSPORT = "transport"
    SERVER = "server"
    RATE_LIMITED = "rate_limited"
    AUTH = "auth"
    CLIENT = "client"
    TOKEN = "token"


class GiveUpReason(StrEnum):
    """Why the retry loop stopped."""

    SUCCESS = "success"
    NON_RETRYABLE = "non_retryable"
    NOT_RETRY_SAFE = "not_retry_safe"
    AUTH_REJECTED = "auth_rejected"
    EXHAUSTED = "exhausted"


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Parse a Retry-After header (delta-seconds or HTTP-date).

    Returns:
        Seconds to wait, or None when absent or unparseable.
    """
    if not value:
        return None
    value = value.strip()
    if value.isascii() and value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - (now or datetime.now(UTC))).total_seconds())


@dataclass(frozen=True)
class Outcome:
    """Result of one attempt: an HTTP status or a failure before any response."""

    status_code: int | None = None
    retry_after: float | None = None
    error: FirebaseError | None = None
    # Token acquisition failed, the request never left the process.
    token_failure: bool = False

    @classmethod
    def from_response(cls, response: httpx.Response) -> Outcome:
        """Outcome carrying the response status and Retry-After hint."""
        retry_after = None
        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
        return cls(status_code=response.status_code, retry_after=retry_after)

    @classmethod
    def from_error(cls, error: FirebaseError, *, token_failure: bool = False) -> Outcome:
        """Outcome for an attempt that produced no response."""
        return cls(error=error, token_failure=token_failure)

    @property
    def request_not_processed(self) -> bool:
        """True when the server cannot have acted on the request."""
        if self.token_failure:
            return True
        if isinstance(self.error, NetworkError):
            return self.error.connect_failed
        return self.status_code in (401, 403, 429)


@dataclass
class RetryContext:
    """Per-request retry bookkeeping, owned by one pipeline execution."""

    idempotent: bool = True
    attempt: int = 0
    started_at: float = field(default_factory=time.monotonic)
    last_classification: Classification | None = None
    # Consecutive 401/403 responses seen so far.
    auth_failures: int = 0

    def elapsed(self, now: float | None = None) -> float:
        """Seconds since the first attempt started."""
        return (now if now is not None else time.monotonic()) - self.started_at

    def observe(self, classification: Classification) -> None:
        """Record a retried attempt's classification and move to the next one."""
        self.last_classification = classification
        if classification is Classification.AUTH:
            self.auth_failures += 1
        elif classification is not Classification.TOKEN:
            # A failed token fetch never reached the server; the streak continues.
            self.auth_failures = 0
        self.attempt += 1


@dataclass(frozen=True)
class RetryDecision:
    """Either retry after ``delay`` or give up for ``reason``."""

    retry: bool
    delay: float = 0.0
    refresh_token: bool = False
    reason: GiveUpReason | None = None

    @classmethod
    def retry_after(cls, delay: float, *, refresh_token: bool = False) -> RetryDecision:
        return cls(retry=True, delay=delay, refresh_token=refresh_token)

    @classmethod
    def give_up(cls, reason: GiveUpReason) -> RetryDecision:
        return cls(retry=False, reason=reason)


class RetryPolicy:
    """Exponential backoff with jitter, bounded by attempts and elapsed time."""

    def __init__(self, config: RetryConfig) -> None:
        self.config = config

    @staticmethod
    def classify(outcome: Outcome) -> Classification:
        """Map an attempt outcome onto a retry classification."""
        if outcome.token_failure:
            return Classification.TOKEN
        if outcome.status_code is None:
            return Classification.TRANSPORT
        status = outcome.status_code
        if status < 400:
            return Classification.SUCCESS
        if status in (401, 403):
            return Classification.AUTH
        if status == 429:
            return Classification.RATE_LIMITED
        if status >= 500:
            return Classification.SERVER
        return Classification.CLIENT

    def decide(
        self,
        context: RetryContext,
        outcome: Outcome,
        *,
        now: float | None = None,
    ) -> RetryDecision:
        """Decide whether attempt ``context.attempt`` should be followed by another.

        Args:
            context: Retry state of the logical request.
            outcome: Result of the attempt just made.
            now: Monotonic clock reading, for deterministic callers.

        Returns:
            Retry decision.
        """
        classification = self.classify(outcome)

        if classification is Classification.SUCCESS:
            return RetryDecision.give_up(GiveUpReason.SUCCESS)
        if classification is Classification.CLIENT:
            return RetryDecision.give_up(GiveUpReason.NON_RETRYABLE)
        if classification is Classification.AUTH and context.auth_failures >= 1:
            return RetryDecision.give_up(GiveUpReason.AUTH_REJECTED)
        if not context.idempotent and not outcome.request_not_processed:
            return RetryDecision.give_up(GiveUpReason.NOT_RETRY_SAFE)
        if context.attempt + 1 >= self.config.max_attempts:
            return RetryDecision.give_up(GiveUpReason.EXHAUSTED)

        refresh_token = classification is Classification.AUTH
        if refresh_token:
            delay = 0.0
        elif classification is Classification.RATE_LIMITED and outcome.retry_after is not None:
            delay = outcome.retry_after
        else:
            delay = self.config.get_delay(context.attempt)

        if context.elapsed(now) + delay > self.config.max_elapsed:
            return RetryDecision.give_up(GiveUpReason.EXHAUSTED)

        return RetryDecision.retry_after(delay, refresh_token=refresh_token)
