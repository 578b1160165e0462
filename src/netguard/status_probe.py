#!/usr/bin/env python3
"""Liveness probe against the application's health endpoint.

The probe answers a different question than the connectivity source: not
"is a link up" but "can we actually reach our backend". It issues a cheap
HEAD request and treats any 2xx response as healthy.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

import httpx

from netguard.status_constants import PROBE_TIMEOUT

logger = logging.getLogger(__name__)

Probe = Callable[[str], Awaitable[bool]]


async def probe_health(
    url: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = PROBE_TIMEOUT,
) -> bool:
    """Check whether the health endpoint answers.

    Args:
        url: Health endpoint URL, absolute or relative to the client's base URL.
        client: Client to issue the request with. A short-lived client is
            created when omitted.
        timeout: Request timeout in seconds.

    Returns:
        True if the endpoint returned a 2xx status, False on any error.
    """
    started = time.monotonic()
    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.head(
                    url, headers={"Cache-Control": "no-cache"}, timeout=timeout
                )
        else:
            response = await client.head(
                url, headers={"Cache-Control": "no-cache"}, timeout=timeout
            )
    except httpx.HTTPError as e:
        logger.debug("Liveness probe to %s failed: %s", url, e)
        return False

    if not response.is_success:
        logger.debug("Liveness probe to %s returned %d", url, response.status_code)
        return False
    latency_ms = (time.monotonic() - started) * 1000
    logger.debug("Liveness probe to %s ok in %.0f ms", url, latency_ms)
    return True


def is_absolute_url(url: str) -> bool:
    """Return True if url carries its own scheme and host."""
    try:
        return httpx.URL(url).is_absolute_url
    except httpx.InvalidURL:
        return False


def make_probe(client: httpx.AsyncClient, timeout: float = PROBE_TIMEOUT) -> Probe:
    """Bind probe_health to a shared client for use by the status monitor."""

    async def probe(url: str) -> bool:
        return await probe_health(url, client, timeout)

    return probe
