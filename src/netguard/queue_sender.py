#!/usr/bin/env python3
"""Raw HTTP calls for replaying queued requests.

The offline queue hands each QueuedRequest to a sender. The sender issues
one raw call and either returns the decoded response or raises a
RequestFailure; it never retries on its own. send_request() is shared
with the resilient client so both classify failures the same way.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from netguard.errors import FailureKind, RequestFailure, classify_error
from netguard.queue_constants import BODY_METHODS
from netguard.queue_state import QueuedRequest

logger = logging.getLogger(__name__)

Sender = Callable[[QueuedRequest], Awaitable[Any]]


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    json: Any = None,
    headers: dict[str, str] | None = None,
) -> Any:
    """Issue a single HTTP call.

    Args:
        client: Client to send with; its base URL applies to relative URLs.
        method: Upper-case HTTP method.
        url: Request URL.
        json: Payload, sent as JSON for POST, PUT and PATCH only.
        headers: Extra headers, applied over a JSON Content-Type default.

    Returns:
        Decoded JSON body, the raw text if the body is not JSON, or None
        for an empty body.

    Raises:
        RequestFailure: On a non-2xx response or any transport error.
    """
    merged = {"Content-Type": "application/json", **(headers or {})}
    payload = json if method in BODY_METHODS and json is not None else None

    try:
        response = await client.request(method, url, json=payload, headers=merged)
    except httpx.HTTPError as e:
        raise classify_error(e) from e

    if not response.is_success:
        raise RequestFailure(
            FailureKind.HTTP_STATUS,
            f"HTTP {response.status_code}: {response.reason_phrase}",
            status=response.status_code,
        )

    logger.debug("%s %s -> %d", method, url, response.status_code)
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpxSender:
    """Replay queued requests with an httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def __call__(self, request: QueuedRequest) -> Any:
        return await send_request(
            self._client,
            request.method,
            request.url,
            json=request.body,
            headers=request.headers,
        )
