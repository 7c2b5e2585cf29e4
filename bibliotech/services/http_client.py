import logging
from typing import Optional

import httpx

from bibliotech.config import settings

logger = logging.getLogger(__name__)


def build_async_client(base_url: Optional[str] = None,
                       timeout: Optional[float] = None,
                       transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Create the pooled async HTTP client used to talk to the record store.

    `transport` lets tests route requests to an in-process ASGI app or a mock.
    """
    limits = httpx.Limits(
        max_keepalive_connections=10,
        max_connections=20,
        keepalive_expiry=30.0,
    )
    total = timeout if timeout is not None else settings.request_timeout
    client_timeout = httpx.Timeout(timeout=total, connect=min(5.0, total))

    kwargs = {
        "base_url": (base_url or settings.api_base_url).rstrip("/"),
        "limits": limits,
        "timeout": client_timeout,
        "follow_redirects": True,
        "headers": {"Accept": "application/json"},
    }
    if transport is not None:
        kwargs["transport"] = transport
    logger.debug(f"HTTP client created for {kwargs['base_url']}")
    return httpx.AsyncClient(**kwargs)
