#!/usr/bin/env python3
"""Connectivity status monitor.

This module provides the StatusMonitor, the single source of truth for
whether the application is online. It combines the raw view of a
ConnectivitySource with a periodic liveness probe: when the link is up
but the health endpoint cannot be reached, the monitor reports offline
until a later probe succeeds or the link changes again.

The monitor only reports state. Reacting to it (replaying the offline
queue, waking parked retries) is done by subscribers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import suppress

from netguard.clock import Clock, SystemClock
from netguard.status_constants import CONNECTION_CHECK_INTERVAL, HEALTH_URL
from netguard.status_probe import Probe, is_absolute_url, probe_health
from netguard.status_source import ConnectivitySource
from netguard.status_state import ConnectivityStatus

logger = logging.getLogger(__name__)

Subscriber = Callable[[ConnectivityStatus], None]


class StatusMonitor:
    """Track connectivity and notify subscribers on change.

    Args:
        source: Platform connectivity source.
        clock: Clock used for the probe interval.
        probe: Coroutine function taking the health URL and returning True
            when the backend is reachable. When omitted, probe_health() is
            used if health_url is absolute; otherwise probing is disabled and
            the status follows the source alone.
        health_url: URL passed to the probe.
        check_interval: Seconds between liveness probes.
    """

    def __init__(
        self,
        source: ConnectivitySource,
        *,
        clock: Clock | None = None,
        probe: Probe | None = None,
        health_url: str = HEALTH_URL,
        check_interval: float = CONNECTION_CHECK_INTERVAL,
    ) -> None:
        self._source = source
        self._clock = clock if clock is not None else SystemClock()
        self._probe: Probe | None = probe if probe is not None else _default_probe(health_url)
        self._health_url = health_url
        self._check_interval = check_interval
        self._reachable = True
        self._subscribers: list[Subscriber] = []
        self._probe_task: asyncio.Task[None] | None = None
        source.add_listener(self._on_source_change)

    @property
    def reachable(self) -> bool:
        """False while the last liveness probe failed on an up link."""
        return self._reachable

    def get_status(self) -> ConnectivityStatus:
        """Return the current best-known connectivity status."""
        return ConnectivityStatus.from_link(
            self._source.is_online() and self._reachable,
            self._source.link_info(),
        )

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for status changes.

        The callback is invoked immediately with the current status, then
        again on every detected change.

        Args:
            callback: Function receiving a ConnectivityStatus.

        Returns:
            A disposer that unregisters the callback. Calling it more than
            once has no effect.
        """
        self._subscribers.append(callback)
        subscribed = True

        def unsubscribe() -> None:
            nonlocal subscribed
            if not subscribed:
                return
            subscribed = False
            with suppress(ValueError):
                self._subscribers.remove(callback)

        self._deliver(callback, self.get_status())
        return unsubscribe

    def start(self) -> None:
        """Start the periodic liveness probe.

        Must be called from a running event loop. Calling it again while
        the probe is running has no effect.
        """
        if self._probe is None:
            logger.debug("No liveness probe configured, relying on the source only")
            return
        if self._probe_task is not None and not self._probe_task.done():
            return
        self._probe_task = asyncio.create_task(self._probe_loop())
        logger.debug("Liveness probe started, interval %.1fs", self._check_interval)

    async def check_reachability(self) -> bool:
        """Run one liveness probe and update the broadcast status.

        Skipped (returns False) while the source reports offline, and
        reports the source state unchanged when no probe is configured.
        Probe errors are logged and count as unreachable; they are never
        raised.

        Returns:
            True if the health endpoint was reachable.
        """
        if not self._source.is_online():
            return False
        if self._probe is None:
            return True

        try:
            healthy = await self._probe(self._health_url)
        except Exception as e:
            logger.warning("Liveness probe raised: %s", e)
            healthy = False

        if healthy != self._reachable:
            self._reachable = healthy
            if healthy:
                logger.info("Backend reachable again")
            else:
                logger.warning("Link is up but %s is unreachable, reporting offline", self._health_url)
            self._notify()
        return healthy

    async def dispose(self) -> None:
        """Stop the probe, detach from the source and drop all subscribers."""
        self._source.remove_listener(self._on_source_change)
        if self._probe_task is not None:
            self._probe_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._probe_task
            self._probe_task = None
        self._subscribers.clear()

    async def _probe_loop(self) -> None:
        while True:
            await self._clock.sleep(self._check_interval)
            await self.check_reachability()

    def _on_source_change(self) -> None:
        # A raw transition supersedes whatever the last probe concluded.
        self._reachable = True
        self._notify()

    def _notify(self) -> None:
        status = self.get_status()
        logger.debug("Connectivity changed: online=%s type=%s", status.is_online, status.connection_type.value)
        for callback in list(self._subscribers):
            self._deliver(callback, status)

    @staticmethod
    def _deliver(callback: Subscriber, status: ConnectivityStatus) -> None:
        try:
            callback(status)
        except Exception:
            logger.exception("Connectivity subscriber %r failed", callback)


def _default_probe(health_url: str) -> Probe | None:
    # A client-less probe cannot resolve a relative URL.
    if is_absolute_url(health_url):
        return probe_health
    logger.warning(
        "Health URL %s is relative and no probe was given, liveness probe disabled", health_url
    )
    return None
