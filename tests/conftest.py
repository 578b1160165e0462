#!/usr/bin/env python3
"""Pytest fixtures for netguard tests.

Provides a virtual clock, a manual connectivity source, an in-memory
store and a scripted sender for the offline queue.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Iterable
from typing import Any

import pytest

from netguard.queue_state import QueuedRequest
from netguard.queue_store import MemoryStore
from netguard.status_source import ManualConnectivitySource

START_TIME = 1_700_000_000.0


class FakeClock:
    """Virtual clock: sleeping advances time instantly and is recorded."""

    def __init__(self, start: float = START_TIME) -> None:
        self._monotonic = 0.0
        self._wall = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self._monotonic

    def time(self) -> float:
        return self._wall

    def advance(self, seconds: float) -> None:
        self._monotonic += seconds
        self._wall += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)


class GateClock(FakeClock):
    """Virtual clock whose sleeps of block_from seconds or more never end.

    Used to park an operation in a backoff wait so the test can cancel or
    wake it.
    """

    def __init__(self, block_from: float) -> None:
        super().__init__()
        self.block_from = block_from

    async def sleep(self, seconds: float) -> None:
        if seconds < self.block_from:
            await super().sleep(seconds)
            return
        self.sleeps.append(seconds)
        await asyncio.Event().wait()


class ScriptedSender:
    """Sender replaying queued requests from a script of outcomes.

    Each call records the request id and consumes the next outcome for
    that URL: an exception is raised, anything else is returned. URLs
    without a script succeed.
    """

    def __init__(self, script: dict[str, Iterable[Any]] | None = None) -> None:
        self._script = {url: list(outcomes) for url, outcomes in (script or {}).items()}
        self.calls: list[QueuedRequest] = []

    async def __call__(self, request: QueuedRequest) -> Any:
        self.calls.append(request)
        outcomes = self._script.get(request.url)
        outcome = outcomes.pop(0) if outcomes else {"ok": True}
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def urls(self) -> list[str]:
        return [r.url for r in self.calls]


async def spin(times: int = 20) -> None:
    """Let pending tasks run."""
    for _ in range(times):
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    """Create a fresh virtual clock."""
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    """Create a seeded random source."""
    return random.Random(1234)


@pytest.fixture
def source() -> ManualConnectivitySource:
    """Create a connectivity source that starts online."""
    return ManualConnectivitySource(online=True)


@pytest.fixture
def store() -> MemoryStore:
    """Create an empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def sender() -> ScriptedSender:
    """Create a sender for which every request succeeds."""
    return ScriptedSender()
