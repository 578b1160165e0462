#!/usr/bin/env python3
"""Cooperative cancellation for retry operations."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """One-shot cancellation flag that can be awaited.

    Cancellation is cooperative: the retry engine checks the token before
    each attempt and races it against every backoff wait. An attempt that
    is already in flight is not interrupted.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Further calls have no effect."""
        self._event.set()

    async def wait(self) -> None:
        """Wait until cancellation is requested."""
        await self._event.wait()
