"""Core components of the Firebase Admin SDK.

Token lifecycle, retry policy and the request pipeline shared by every
service client derived from one app.
"""

from __future__ import annotations

from .errors import ErrorFactory
from .pipeline import RequestPipeline, attach_token
from .retry_policy import (
    Classification,
    GiveUpReason,
    Outcome,
    RetryContext,
    RetryDecision,
    RetryPolicy,
    parse_retry_after,
)
from .token_manager import TokenManager, TokenState
from .token_source import ServiceAccountTokenSource, TokenSource

__all__ = [
    "ErrorFactory",
    "RequestPipeline",
    "attach_token",
    "Classification",
    "GiveUpReason",
    "Outcome",
    "RetryContext",
    "RetryDecision",
    "RetryPolicy",
    "parse_retry_after",
    "TokenManager",
    "TokenState",
    "ServiceAccountTokenSource",
    "TokenSource",
]
