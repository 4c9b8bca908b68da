"""Structured logging and tracing for the Firebase Admin SDK.

Log records go through structlog; spans through the OpenTelemetry API, which
is a no-op unless the host application installs an SDK. Credential material
is redacted from every log record before rendering.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from .errors import FirebaseError

if TYPE_CHECKING:
    from collections.abc import Generator, MutableMapping

    from .config import TelemetryConfig

SDK_NAME = "firebase-admin-sdk"
SDK_VERSION = "0.1.0"

# Event keys whose values must never reach a log sink.
SENSITIVE_KEYS = frozenset({"authorization", "access_token", "assertion", "private_key"})

_tracer: trace.Tracer | None = None
_logger: structlog.stdlib.BoundLogger | None = None


def get_tracer() -> trace.Tracer:
    """Get or create the SDK tracer."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(SDK_NAME, SDK_VERSION)
    return _tracer


def get_logger() -> structlog.stdlib.BoundLogger:
    """Get or create the SDK logger."""
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(SDK_NAME)
    return _logger


def redact_credentials(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking bearer tokens and key material."""
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = "[REDACTED]"
    return event_dict


def configure_telemetry(config: TelemetryConfig) -> None:
    """Install the tracer and JSON log pipeline described by ``config``.

    With telemetry disabled the tracer becomes a no-op and structlog is left
    as the host application configured it.
    """
    global _tracer, _logger

    if config.enabled and config.trace_requests:
        _tracer = trace.get_tracer(config.service_name, SDK_VERSION)
    else:
        _tracer = trace.NoOpTracer()

    if not config.enabled:
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            redact_credentials,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _log_level_to_int(config.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger = structlog.get_logger(config.service_name)


def _log_level_to_int(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


@contextmanager
def request_context(**values: Any) -> Generator[None, None, None]:
    """Bind ``values`` (e.g. the correlation ID) to every log record emitted inside."""
    with structlog.contextvars.bound_contextvars(**values):
        yield


@contextmanager
def trace_operation(
    name: str,
    *,
    attributes: dict[str, Any] | None = None,
) -> Generator[trace.Span, None, None]:
    """Run the enclosed block inside a span.

    Args:
        name: Span name, e.g. ``firebase.request``.
        attributes: Span attributes; ``None`` values are skipped.

    Yields:
        The active span.
    """
    with get_tracer().start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            if isinstance(e, FirebaseError):
                span.set_attribute("firebase.error.code", e.code)
                span.set_attribute("firebase.error.retryable", e.retryable)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
