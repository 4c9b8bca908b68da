"""HTTP transport for the Firebase Admin SDK.

One pooled ``httpx.AsyncClient`` is created per app and shared by the token
source and the request pipeline.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from .config import AppConfig


def create_async_http_client(
    config: AppConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create configured async HTTP client.

    Construction performs no I/O; connections are opened on first use.

    Args:
        config: SDK configuration.
        transport: Optional transport override (e.g. ``httpx.MockTransport``).

    Returns:
        Configured httpx.AsyncClient.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=config.connect_timeout,
            read=config.timeout,
            write=config.timeout,
            pool=config.timeout,
        ),
        headers={
            "User-Agent": config.user_agent,
            "Accept": "application/json",
        },
        follow_redirects=False,
        transport=transport,
    )
