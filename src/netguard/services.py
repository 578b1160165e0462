#!/usr/bin/env python3
"""Construction and lifetime of the resilience services.

The status monitor, offline queue and retry engine live for the whole
process (one set per application instance). create_services() builds and
wires them; ResilienceServices.dispose() releases timers, tasks and
subscriptions in reverse order of construction.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

import httpx

from netguard.clock import Clock, SystemClock
from netguard.offline_queue import OfflineQueue, OutcomeCallback
from netguard.queue_constants import REPLAY_INTERVAL, STORAGE_KEY
from netguard.queue_sender import HttpxSender, Sender
from netguard.queue_store import KeyValueStore
from netguard.retry_config import RetryPreset, get_preset
from netguard.retry_constants import RECONNECT_STAGGER
from netguard.retry_engine import RetryEngine
from netguard.status_constants import CONNECTION_CHECK_INTERVAL, HEALTH_URL
from netguard.status_monitor import StatusMonitor
from netguard.status_probe import Probe, make_probe
from netguard.status_source import ConnectivitySource

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Tunables for create_services().

    Attributes:
        health_url: Endpoint probed by the liveness check.
        check_interval: Seconds between liveness probes.
        storage_key: Key holding the persisted offline queue.
        replay_interval: Seconds between successive queue replays.
        max_age: Seconds after which queued requests expire, or None.
        default_preset: Retry preset used when no config is passed.
        reconnect_stagger: Upper bound of the wake-up stagger after reconnect.
    """

    health_url: str = HEALTH_URL
    check_interval: float = CONNECTION_CHECK_INTERVAL
    storage_key: str = STORAGE_KEY
    replay_interval: float = REPLAY_INTERVAL
    max_age: float | None = None
    default_preset: RetryPreset = RetryPreset.STANDARD
    reconnect_stagger: float = RECONNECT_STAGGER


@dataclass
class ResilienceServices:
    """The three resilience components of one application instance."""

    monitor: StatusMonitor
    queue: OfflineQueue
    engine: RetryEngine

    def start(self) -> None:
        """Start background work. Must be called from a running event loop.

        Starts the liveness probe and replays any stored requests when
        already online.
        """
        self.monitor.start()
        self.queue.start()

    async def dispose(self) -> None:
        """Release every timer, task and subscription."""
        await self.engine.dispose()
        await self.queue.dispose()
        await self.monitor.dispose()
        logger.debug("Resilience services disposed")


def create_services(
    source: ConnectivitySource,
    store: KeyValueStore,
    *,
    http_client: httpx.AsyncClient | None = None,
    sender: Sender | None = None,
    probe: Probe | None = None,
    clock: Clock | None = None,
    rng: random.Random | None = None,
    settings: Settings | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> ResilienceServices:
    """Build and wire the monitor, queue and engine.

    Args:
        source: Platform connectivity source.
        store: Store for the offline queue.
        http_client: Client used for probing and replay when sender or
            probe are not given.
        sender: Replay function for the offline queue.
        probe: Liveness probe for the monitor.
        clock: Shared clock.
        rng: Shared random source.
        settings: Tunables; defaults when None.
        on_outcome: Per-request replay outcome callback.

    Returns:
        The wired ResilienceServices.

    Raises:
        ValueError: If neither sender nor http_client is given.
    """
    settings = settings if settings is not None else Settings()
    clock = clock if clock is not None else SystemClock()
    if sender is None:
        if http_client is None:
            raise ValueError("Either sender or http_client is required")
        sender = HttpxSender(http_client)
    if probe is None and http_client is not None:
        probe = make_probe(http_client)

    monitor = StatusMonitor(
        source,
        clock=clock,
        probe=probe,
        health_url=settings.health_url,
        check_interval=settings.check_interval,
    )
    queue = OfflineQueue(
        store,
        sender,
        monitor=monitor,
        clock=clock,
        storage_key=settings.storage_key,
        replay_interval=settings.replay_interval,
        max_age=settings.max_age,
        on_outcome=on_outcome,
    )
    engine = RetryEngine(
        monitor,
        clock=clock,
        rng=rng,
        default_config=get_preset(settings.default_preset),
        reconnect_stagger=settings.reconnect_stagger,
    )
    return ResilienceServices(monitor=monitor, queue=queue, engine=engine)
