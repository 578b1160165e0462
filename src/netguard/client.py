#!/usr/bin/env python3
"""HTTP client wrapper routing calls through the resilience services.

Every call goes through the retry engine under a preset. A mutating call
that still fails with a network error while the monitor reports offline
is moved to the offline queue, and the caller gets QueuedForLater instead
of a generic failure so it can tell the user the change will be sent
later.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from netguard.errors import QueuedForLater, RequestFailure
from netguard.queue_constants import MUTATING_METHODS
from netguard.queue_sender import send_request
from netguard.queue_state import Priority
from netguard.retry_config import RetryPreset

if TYPE_CHECKING:
    import httpx

    from netguard.services import ResilienceServices

logger = logging.getLogger(__name__)


class ResilientClient:
    """Retrying HTTP client with offline deferral of writes.

    Args:
        services: The application's resilience services.
        http_client: Transport for the actual calls.
        preset: Retry preset used when a call does not name one.
        queue_priority: Priority given to requests deferred while offline.
    """

    def __init__(
        self,
        services: ResilienceServices,
        http_client: httpx.AsyncClient,
        *,
        preset: RetryPreset | str = RetryPreset.STANDARD,
        queue_priority: Priority | str = Priority.MEDIUM,
    ) -> None:
        self._services = services
        self._http = http_client
        self._preset = preset
        self._queue_priority = Priority(queue_priority)

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        headers: dict[str, str] | None = None,
        preset: RetryPreset | str | None = None,
        priority: Priority | str | None = None,
    ) -> Any:
        """Send a request with retry and offline deferral.

        Returns:
            The decoded response body.

        Raises:
            QueuedForLater: A mutating call was deferred to the offline queue.
            RequestFailure: The call failed terminally or ran out of retries.
            OperationAborted: The retry operation was cancelled.
        """
        method = method.upper()

        async def call() -> Any:
            return await send_request(self._http, method, url, json=json, headers=headers)

        try:
            return await self._services.engine.retry_api_call(call, preset or self._preset)
        except RequestFailure as e:
            if not self._should_defer(method, e):
                raise
            request_id = self._services.queue.enqueue(
                url,
                method,
                json,
                headers,
                priority=priority or self._queue_priority,
            )
            logger.info("Offline, deferred %s %s as %s", method, url, request_id)
            raise QueuedForLater(request_id) from e

    async def get(self, url: str, **kwargs: Any) -> Any:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> Any:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", url, **kwargs)

    def _should_defer(self, method: str, failure: RequestFailure) -> bool:
        if method not in MUTATING_METHODS or not failure.is_network:
            return False
        return not self._services.monitor.get_status().is_online
