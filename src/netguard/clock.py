#!/usr/bin/env python3
"""Time capability shared by the monitor, queue and retry engine.

Components never call time.monotonic(), time.time() or asyncio.sleep()
directly. They receive a Clock so tests can substitute virtual time and
advance it instead of sleeping.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Source of monotonic time, wall time and sleeping."""

    def monotonic(self) -> float:
        """Return monotonic seconds for measuring durations."""
        ...

    def time(self) -> float:
        """Return wall-clock epoch seconds for persisted timestamps."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the calling task for the given number of seconds."""
        ...


class SystemClock:
    """Clock backed by the time module and the running asyncio loop."""

    def monotonic(self) -> float:
        return time.monotonic()

    def time(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
