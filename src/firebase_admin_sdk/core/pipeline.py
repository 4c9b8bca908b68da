"""Request pipeline: token stage, transport call and retry stage.

Every logical request runs the same loop::

    token -> attach Authorization -> send -> classify -> retry or give up

Attempts of one request are strictly sequential; independent requests run
concurrently and share only the token manager.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx

from ..errors import AuthError, RequestCancelledError, TransientAuthError
from ..telemetry import get_logger, request_context, trace_operation
from .errors import ErrorFactory
from .retry_policy import GiveUpReason, Outcome, RetryContext

if TYPE_CHECKING:
    from ..models import AccessToken, ApiRequest
    from .retry_policy import RetryPolicy
    from .token_manager import TokenManager


def attach_token(
    client: httpx.AsyncClient,
    request: ApiRequest,
    token: AccessToken,
) -> httpx.Request:
    """Build a transport request for one attempt with the bearer token set."""
    headers = dict(request.headers)
    headers["Authorization"] = token.authorization
    return client.build_request(
        request.method,
        request.url,
        params=request.params,
        headers=headers,
        json=request.json_body,
        content=request.content,
        data=request.data,
    )


class RequestPipeline:
    """Authenticated, retrying executor shared by all service clients."""

    def __init__(
        self,
        transport: httpx.AsyncClient,
        token_manager: TokenManager,
        policy: RetryPolicy,
    ) -> None:
        """Initialize pipeline.

        Args:
            transport: HTTP client used to dispatch requests.
            token_manager: Shared token lifecycle manager.
            policy: Retry policy.
        """
        self._transport = transport
        self._tokens = token_manager
        self._policy = policy
        self._logger = get_logger()

    @property
    def token_manager(self) -> TokenManager:
        return self._tokens

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def execute(
        self,
        request: ApiRequest,
        *,
        idempotent: bool | None = None,
        deadline: float | None = None,
    ) -> httpx.Response:
        """Execute a logical request with auth and retries.

        Args:
            request: Logical request.
            idempotent: Whether the request is safe to repeat. Derived from
                the HTTP method when None.
            deadline: Optional overall time limit in seconds.

        Returns:
            The successful response.

        Raises:
            NonRetryableError: Terminal failure (e.g. 400, 404).
            ExhaustedRetriesError: Retry budget consumed.
            PermanentAuthError: Credential rejected.
            RequestCancelledError: ``deadline`` elapsed.
        """
        context = RetryContext(
            idempotent=request.idempotent_by_method if idempotent is None else idempotent
        )
        correlation_id = ErrorFactory.generate_correlation_id()

        timeout = asyncio.timeout(deadline)
        with request_context(correlation_id=correlation_id):
            try:
                async with timeout:
                    return await self._run(request, context, correlation_id)
            except TimeoutError as e:
                if not timeout.expired():
                    raise
                self._logger.warning(
                    "Request deadline exceeded",
                    url=request.url,
                    deadline=deadline,
                    attempts=context.attempt,
                )
                raise RequestCancelledError(
                    f"Request deadline of {deadline}s exceeded",
                    deadline=deadline,
                    attempts=context.attempt,
                    correlation_id=correlation_id,
                ) from e

    async def _run(
        self,
        request: ApiRequest,
        context: RetryContext,
        correlation_id: str,
    ) -> httpx.Response:
        refresh = False
        rejected: AccessToken | None = None

        while True:
            token: AccessToken | None = None
            response: httpx.Response | None = None
            try:
                if refresh:
                    token = await self._tokens.force_refresh(rejected)
                else:
                    token = await self._tokens.get_token()
            except TransientAuthError as e:
                outcome = Outcome.from_error(e, token_failure=True)
            except AuthError as e:
                if e.correlation_id is None:
                    e.correlation_id = correlation_id
                raise
            else:
                outcome, response = await self._dispatch(request, token, context, correlation_id)

            decision = self._policy.decide(context, outcome)
            if not decision.retry:
                if decision.reason is GiveUpReason.SUCCESS and response is not None:
                    return response
                raise ErrorFactory.for_give_up(
                    decision.reason or GiveUpReason.NON_RETRYABLE,
                    outcome,
                    response,
                    attempts=context.attempt + 1,
                    correlation_id=correlation_id,
                )

            classification = self._policy.classify(outcome)
            self._logger.warning(
                "Request failed, retrying",
                url=request.url,
                attempt=context.attempt,
                classification=str(classification),
                status_code=outcome.status_code,
                delay=decision.delay,
                refresh_token=decision.refresh_token,
            )
            context.observe(classification)
            if decision.refresh_token:
                refresh, rejected = True, token
            elif not (refresh and outcome.token_failure):
                # A forced refresh that failed stays forced on the next attempt.
                refresh, rejected = False, None
            if decision.delay > 0:
                await asyncio.sleep(decision.delay)

    async def _dispatch(
        self,
        request: ApiRequest,
        token: AccessToken,
        context: RetryContext,
        correlation_id: str,
    ) -> tuple[Outcome, httpx.Response | None]:
        http_request = attach_token(self._transport, request, token)
        with trace_operation(
            "firebase.request",
            attributes={
                "http.method": request.method,
                "http.url": request.url,
                "attempt": context.attempt,
                "correlation_id": correlation_id,
            },
        ) as span:
            try:
                response = await self._transport.send(http_request)
            except httpx.RequestError as e:
                error = ErrorFactory.from_exception(e, correlation_id=correlation_id)
                span.set_attribute("error.type", type(e).__name__)
                return Outcome.from_error(error), None

            span.set_attribute("http.status_code", response.status_code)
            return Outcome.from_response(response), response
