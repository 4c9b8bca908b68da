"""Unit tests for the shared token lifecycle manager.

Single flight, refresh ahead of expiry, failure recovery, forced refresh
and cancellation isolation.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from firebase_admin_sdk.config import TokenConfig
from firebase_admin_sdk.core.token_manager import TokenManager, TokenState
from firebase_admin_sdk.errors import AuthError, PermanentAuthError, TransientAuthError
from firebase_admin_sdk.models import AccessToken


class Clock:
    """Controllable wall clock."""

    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class StubSource:
    """Token source counting exchanges, optionally gated or failing."""

    def __init__(self, clock: Clock, *, lifetime: float = 3600) -> None:
        self.clock = clock
        self.lifetime = lifetime
        self.calls = 0
        self.gate: asyncio.Event | None = None
        self.failures: list[Exception] = []

    async def fetch_token(self) -> AccessToken:
        self.calls += 1
        call = self.calls
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)
        now = self.clock()
        return AccessToken(
            token=f"token-{call}",
            issued_at=now,
            expires_at=now + timedelta(seconds=self.lifetime),
        )


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def source(clock: Clock) -> StubSource:
    return StubSource(clock)


@pytest.fixture
def manager(source: StubSource, clock: Clock) -> TokenManager:
    return TokenManager(
        source,
        TokenConfig(expiry_skew=60.0, refresh_ahead=300.0),
        clock=clock,
    )


class TestSingleFlight:
    """Concurrent callers share one exchange."""

    def test_construction_performs_no_exchange(
        self, manager: TokenManager, source: StubSource
    ) -> None:
        assert manager.state is TokenState.UNINITIALIZED
        assert manager.token is None
        assert source.calls == 0

    def test_concurrent_callers_share_one_exchange(
        self, manager: TokenManager, source: StubSource
    ) -> None:
        async def scenario() -> list[AccessToken]:
            return await asyncio.gather(*(manager.get_token() for _ in range(50)))

        tokens = asyncio.run(scenario())

        assert source.calls == 1
        assert {t.token for t in tokens} == {"token-1"}
        assert manager.state is TokenState.VALID

    def test_failure_reaches_every_waiter(
        self, manager: TokenManager, source: StubSource
    ) -> None:
        error = PermanentAuthError("revoked")
        source.failures.append(error)

        async def scenario() -> list[object]:
            return await asyncio.gather(
                *(manager.get_token() for _ in range(10)), return_exceptions=True
            )

        results = asyncio.run(scenario())

        assert source.calls == 1
        assert all(r is error for r in results)
        assert manager.state is TokenState.FAILED
        assert manager.last_error is error

    def test_failed_state_is_retriable(
        self, manager: TokenManager, source: StubSource
    ) -> None:
        source.failures.append(TransientAuthError("endpoint down"))

        async def scenario() -> AccessToken:
            with pytest.raises(TransientAuthError):
                await manager.get_token()
            return await manager.get_token()

        token = asyncio.run(scenario())

        assert token.token == "token-2"
        assert manager.state is TokenState.VALID
        assert manager.last_error is None

    def test_unexpected_source_error_becomes_transient(
        self, manager: TokenManager, source: StubSource
    ) -> None:
        source.failures.append(RuntimeError("boom"))

        with pytest.raises(TransientAuthError):
            asyncio.run(manager.get_token())

        assert manager.state is TokenState.FAILED


class TestExpiry:
    """Stale tokens are never handed out."""

    def test_fresh_token_is_reused(
        self, manager: TokenManager, source: StubSource, clock: Clock
    ) -> None:
        async def scenario() -> tuple[AccessToken, AccessToken]:
            first = await manager.get_token()
            clock.advance(600)
            return first, await manager.get_token()

        first, second = asyncio.run(scenario())

        assert first == second
        assert source.calls == 1

    def test_token_within_skew_is_refreshed_before_use(
        self, manager: TokenManager, source: StubSource, clock: Clock
    ) -> None:
        async def scenario() -> AccessToken:
            await manager.get_token()
            clock.advance(3600 - 30)
            return await manager.get_token()

        token = asyncio.run(scenario())

        assert source.calls == 2
        assert token.token == "token-2"
        assert token.is_fresh(60.0, clock())

    def test_refresh_ahead_returns_current_token(
        self, manager: TokenManager, source: StubSource, clock: Clock
    ) -> None:
        async def scenario() -> tuple[AccessToken, TokenState, AccessToken]:
            await manager.get_token()
            clock.advance(3600 - 120)
            source.gate = asyncio.Event()
            during = await manager.get_token()
            state = manager.state
            source.gate.set()
            await manager._refresh_task
            return during, state, await manager.get_token()

        during, state, after = asyncio.run(scenario())

        assert during.token == "token-1"
        assert state is TokenState.REFRESHING
        assert after.token == "token-2"
        assert source.calls == 2

    def test_token_already_inside_skew_is_rejected(
        self, clock: Clock
    ) -> None:
        source = StubSource(clock, lifetime=30)
        manager = TokenManager(source, TokenConfig(expiry_skew=60.0), clock=clock)

        with pytest.raises(TransientAuthError):
            asyncio.run(manager.get_token())

        assert manager.state is TokenState.FAILED
        assert manager.token is None


class TestForceRefresh:
    def test_force_refresh_replaces_rejected_token(
        self, manager: TokenManager, source: StubSource
    ) -> None:
        async def scenario() -> tuple[AccessToken, AccessToken]:
            first = await manager.get_token()
            return first, await manager.force_refresh(first)

        first, second = asyncio.run(scenario())

        assert first.token == "token-1"
        assert second.token == "token-2"

    def test_already_rotated_token_is_not_refreshed_again(
        self, manager: TokenManager, source: StubSource
    ) -> None:
        async def scenario() -> AccessToken:
            first = await manager.get_token()
            await manager.force_refresh(first)
            return await manager.force_refresh(first)

        token = asyncio.run(scenario())

        assert token.token == "token-2"
        assert source.calls == 2

    def test_concurrent_forced_refreshes_share_one_exchange(
        self, manager: TokenManager, source: StubSource
    ) -> None:
        async def scenario() -> list[AccessToken]:
            first = await manager.get_token()
            return await asyncio.gather(*(manager.force_refresh(first) for _ in range(20)))

        tokens = asyncio.run(scenario())

        assert source.calls == 2
        assert {t.token for t in tokens} == {"token-2"}


class TestCancellation:
    def test_cancelled_waiter_does_not_abort_refresh(
        self, manager: TokenManager, source: StubSource
    ) -> None:
        source.gate = asyncio.Event()

        async def scenario() -> tuple[bool, AccessToken]:
            waiter_a = asyncio.create_task(manager.get_token())
            waiter_b = asyncio.create_task(manager.get_token())
            await asyncio.sleep(0.01)

            waiter_a.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter_a

            assert manager.state is TokenState.REFRESHING
            source.gate.set()
            return waiter_a.cancelled(), await waiter_b

        cancelled, token = asyncio.run(scenario())

        assert cancelled is True
        assert token.token == "token-1"
        assert source.calls == 1
        assert manager.state is TokenState.VALID


def test_auth_errors_share_base_class() -> None:
    assert issubclass(TransientAuthError, AuthError)
    assert issubclass(PermanentAuthError, AuthError)
