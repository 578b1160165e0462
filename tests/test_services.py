#!/usr/bin/env python3
"""Tests for create_services wiring and lifetime."""
import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import FakeClock, ScriptedSender, spin
from netguard.queue_constants import STORAGE_KEY
from netguard.queue_sender import HttpxSender
from netguard.queue_state import QueuedRequest
from netguard.queue_store import MemoryStore
from netguard.retry_config import PRESETS, RetryPreset
from netguard.services import Settings, create_services
from netguard.status_source import ManualConnectivitySource


def test_requires_sender_or_client(source: ManualConnectivitySource, store: MemoryStore) -> None:
    """Test construction fails without a way to replay requests."""
    with pytest.raises(ValueError):
        create_services(source, store)


@pytest.mark.asyncio
async def test_builds_httpx_sender_from_client(source: ManualConnectivitySource, store: MemoryStore) -> None:
    """Test an http_client alone is enough to build the services."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))) as client:
        services = create_services(source, store, http_client=client)
        assert isinstance(services.queue._sender, HttpxSender)
        await services.dispose()


def test_settings_select_default_preset(
    source: ManualConnectivitySource, store: MemoryStore, sender: ScriptedSender
) -> None:
    """Test the engine's default config follows the configured preset."""
    services = create_services(
        source, store, sender=sender, settings=Settings(default_preset=RetryPreset.CONSERVATIVE)
    )
    assert services.engine._default_config == PRESETS[RetryPreset.CONSERVATIVE]


@pytest.mark.asyncio
async def test_reconnect_replays_queue(
    source: ManualConnectivitySource, store: MemoryStore, sender: ScriptedSender, clock: FakeClock
) -> None:
    """Test the queue wired by create_services replays on reconnect."""
    source.set_online(False)
    services = create_services(source, store, sender=sender, probe=AsyncMock(return_value=True), clock=clock)
    services.queue.enqueue("/a", "POST")

    source.set_online(True)
    await spin()

    assert sender.urls == ["/a"]
    await services.dispose()


@pytest.mark.asyncio
async def test_start_and_dispose(
    source: ManualConnectivitySource, store: MemoryStore, sender: ScriptedSender, clock: FakeClock
) -> None:
    """Test start runs the liveness probe and dispose stops everything."""
    probe = AsyncMock(return_value=True)
    services = create_services(
        source,
        store,
        sender=sender,
        probe=probe,
        clock=clock,
        settings=Settings(health_url="https://api.example.com/health", check_interval=5.0),
    )

    services.start()
    await spin()
    await services.dispose()

    probe.assert_awaited_with("https://api.example.com/health")
    assert set(clock.sleeps) == {5.0}


@pytest.mark.asyncio
async def test_default_settings_without_client_stay_online(
    source: ManualConnectivitySource, store: MemoryStore, sender: ScriptedSender, clock: FakeClock
) -> None:
    """Test services built from a sender alone do not report a healthy link offline."""
    services = create_services(source, store, sender=sender, clock=clock)

    assert await services.monitor.check_reachability() is True
    assert services.monitor.get_status().is_online is True
    await services.dispose()


def test_start_replays_stored_requests_when_built_outside_loop(
    source: ManualConnectivitySource, store: MemoryStore, sender: ScriptedSender, clock: FakeClock
) -> None:
    """Test services created before the loop replay stored requests on start."""
    stored = QueuedRequest(id="req_a", url="/a", method="PUT", enqueued_at=clock.time())
    store.set(STORAGE_KEY, [stored.to_dict()])
    services = create_services(source, store, sender=sender, probe=AsyncMock(return_value=True), clock=clock)

    async def run() -> None:
        services.start()
        await spin()
        await services.dispose()

    asyncio.run(run())

    assert sender.urls == ["/a"]
