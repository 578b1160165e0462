#!/usr/bin/env python3
"""Durable queue of requests deferred while offline.

This module provides the OfflineQueue. Mutating requests that could not be
sent because connectivity was lost are stored here, persisted to a local
key-value store after every change, and replayed in priority order (high,
medium, low; oldest first within a tier) once the status monitor reports
online again.

Delivery is at-most max_retries attempts per request: a request is removed
when a replay succeeds or when its retry count reaches max_retries. Replay
failures are contained per request and never raised to callers.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

from netguard.clock import Clock, SystemClock
from netguard.queue_constants import (
    ALLOWED_METHODS,
    DEFAULT_MAX_RETRIES,
    REPLAY_INTERVAL,
    STORAGE_KEY,
)
from netguard.queue_state import Priority, QueuedRequest, QueueStatus, ReplayOutcome
from netguard.queue_store import KeyValueStore, StoreError

if TYPE_CHECKING:
    from netguard.queue_sender import Sender
    from netguard.status_monitor import StatusMonitor
    from netguard.status_state import ConnectivityStatus

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[ReplayOutcome], None]


class OfflineQueue:
    """Priority-ordered, persisted queue of deferred requests.

    Args:
        store: Key-value store holding the serialized queue.
        sender: Coroutine function replaying one request; raises on failure.
        monitor: Status monitor. Without one the queue assumes it is online.
        clock: Clock for timestamps and the inter-replay pause.
        storage_key: Key the queue is stored under.
        replay_interval: Seconds to pause between successive replays.
        max_age: Seconds after which a queued request expires, or None to
            keep requests until they succeed or run out of attempts.
        on_outcome: Called with a ReplayOutcome after every replay attempt.
    """

    def __init__(
        self,
        store: KeyValueStore,
        sender: Sender,
        *,
        monitor: StatusMonitor | None = None,
        clock: Clock | None = None,
        storage_key: str = STORAGE_KEY,
        replay_interval: float = REPLAY_INTERVAL,
        max_age: float | None = None,
        on_outcome: OutcomeCallback | None = None,
    ) -> None:
        self._store = store
        self._sender = sender
        self._monitor = monitor
        self._clock = clock if clock is not None else SystemClock()
        self._storage_key = storage_key
        self._replay_interval = replay_interval
        self._max_age = max_age
        self._on_outcome = on_outcome
        self._queue: list[QueuedRequest] = []
        self._processing = False
        self._rerun = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._was_online: bool | None = None

        self._load()
        self._unsubscribe = monitor.subscribe(self._on_status) if monitor is not None else None

    @property
    def is_processing(self) -> bool:
        return self._processing

    def start(self) -> None:
        """Replay requests loaded from storage if already online.

        Must be called from a running event loop. Needed when the queue was
        built before the loop started, since no replay could be scheduled
        then. Has no effect once a replay was scheduled for the current
        online period.
        """
        if self._was_online is True or not self._is_online():
            return
        if self._spawn(self.process_queue()):
            self._was_online = True

    def enqueue(
        self,
        url: str,
        method: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
        *,
        priority: Priority | str = Priority.MEDIUM,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> str:
        """Add a request to the queue and persist it.

        Schedules an immediate replay pass when online and an event loop is
        running.

        Args:
            url: Request URL.
            method: HTTP method, case-insensitive.
            body: JSON-serializable payload.
            headers: Extra request headers.
            priority: Replay tier.
            max_retries: Replay attempts before the request is dropped.

        Returns:
            The id of the queued request.

        Raises:
            ValueError: On an unknown method or priority, or max_retries < 1.
        """
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported method {method!r}")
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")

        request = QueuedRequest(
            id=f"req_{uuid.uuid4().hex[:12]}",
            url=url,
            method=method,
            enqueued_at=self._clock.time(),
            body=body,
            headers=dict(headers or {}),
            max_retries=max_retries,
            priority=Priority(priority),
        )
        self._queue.append(request)
        self._sort()
        self._save()
        logger.info("Queued %s %s as %s (priority %s)", method, url, request.id, request.priority.value)

        if self._is_online():
            self._spawn(self.process_queue())
        return request.id

    async def process_queue(self) -> None:
        """Replay every queued request once, in priority order.

        Returns immediately if the queue is empty or the monitor reports
        offline. A call made while a pass is running makes that pass go
        round again for requests it has not attempted yet, so requests
        enqueued mid-pass are not left behind. Never raises for replay
        failures.
        """
        if self._processing:
            logger.debug("Queue processing already in progress, scheduling another pass")
            self._rerun = True
            return
        if not self._queue:
            return
        if not self._is_online():
            logger.debug("Cannot process queue: offline")
            return

        self._processing = True
        attempted: set[str] = set()
        try:
            while True:
                self._rerun = False
                await self._replay_pass(attempted)
                if not (self._rerun and self._is_online()):
                    break
                if all(r.id in attempted for r in self._queue):
                    break
        finally:
            self._rerun = False
            self._processing = False
        logger.info("Queue processing complete, %d request(s) remaining", len(self._queue))

    async def _replay_pass(self, attempted: set[str]) -> None:
        finished: set[str] = set()
        try:
            self._drop_expired()
            snapshot = [r for r in self._queue if r.id not in attempted]
            logger.info("Processing %d queued request(s)", len(snapshot))
            for request in snapshot:
                if not self._contains(request.id):
                    continue
                if attempted:
                    await self._clock.sleep(self._replay_interval)
                attempted.add(request.id)
                if await self._replay(request):
                    finished.add(request.id)
        finally:
            self._queue = [r for r in self._queue if r.id not in finished]
            self._save()

    def remove_from_queue(self, request_id: str) -> bool:
        """Remove a request by id.

        Returns:
            True if a request was removed.
        """
        remaining = [r for r in self._queue if r.id != request_id]
        if len(remaining) == len(self._queue):
            return False
        self._queue = remaining
        self._save()
        return True

    def clear_queue(self) -> None:
        """Drop every queued request."""
        self._queue = []
        self._save()

    def get_queue_status(self) -> QueueStatus:
        by_priority = {priority: 0 for priority in Priority}
        oldest: float | None = None
        for request in self._queue:
            by_priority[request.priority] += 1
            if oldest is None or request.enqueued_at < oldest:
                oldest = request.enqueued_at
        return QueueStatus(total=len(self._queue), by_priority=by_priority, oldest_enqueued_at=oldest)

    def get_requests(self) -> list[QueuedRequest]:
        """Return copies of the queued requests in replay order."""
        return copy.deepcopy(self._queue)

    async def dispose(self) -> None:
        """Unsubscribe from the monitor and cancel scheduled replay passes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def _replay(self, request: QueuedRequest) -> bool:
        """Replay one request and record the outcome.

        Returns:
            True if the request should leave the queue.
        """
        try:
            await self._sender(request)
        except Exception as e:
            request.retry_count += 1
            gave_up = request.exhausted
            if gave_up:
                logger.error(
                    "Dropping queued request %s (%s %s) after %d attempt(s): %s",
                    request.id, request.method, request.url, request.retry_count, e,
                )
            else:
                logger.warning(
                    "Replay of %s failed (%d/%d): %s",
                    request.id, request.retry_count, request.max_retries, e,
                )
            self._report(ReplayOutcome(request=request, succeeded=False, error=e, gave_up=gave_up))
            return gave_up

        logger.info("Replayed queued request %s", request.id)
        self._report(ReplayOutcome(request=request, succeeded=True))
        return True

    def _report(self, outcome: ReplayOutcome) -> None:
        if self._on_outcome is None:
            return
        try:
            self._on_outcome(outcome)
        except Exception:
            logger.exception("Replay outcome callback failed for %s", outcome.request.id)

    def _is_online(self) -> bool:
        return self._monitor is None or self._monitor.get_status().is_online

    def _contains(self, request_id: str) -> bool:
        return any(r.id == request_id for r in self._queue)

    def _sort(self) -> None:
        # list.sort is stable, so equal keys keep their insertion order.
        self._queue.sort(key=QueuedRequest.sort_key)

    def _drop_expired(self) -> int:
        if self._max_age is None:
            return 0
        cutoff = self._clock.time() - self._max_age
        kept = [r for r in self._queue if r.enqueued_at >= cutoff]
        dropped = len(self._queue) - len(kept)
        if dropped:
            logger.warning("Dropped %d expired request(s) from offline queue", dropped)
            self._queue = kept
        return dropped

    def _load(self) -> None:
        try:
            raw = self._store.get(self._storage_key)
        except StoreError as e:
            logger.warning("Failed to load request queue, starting empty: %s", e)
            return
        if raw is None:
            return
        if not isinstance(raw, list):
            logger.warning("Stored request queue is not a list, starting empty")
            return

        for item in raw:
            if not isinstance(item, dict):
                logger.warning("Skipping malformed queued request: %r", item)
                continue
            try:
                self._queue.append(QueuedRequest.from_dict(item))
            except ValueError as e:
                logger.warning("Skipping malformed queued request: %s", e)
        self._sort()
        if self._drop_expired():
            self._save()
        logger.debug("Loaded %d request(s) from storage", len(self._queue))

    def _save(self) -> None:
        try:
            self._store.set(self._storage_key, [r.to_dict() for r in self._queue])
        except StoreError as e:
            logger.error("Failed to save request queue: %s", e)

    def _on_status(self, status: ConnectivityStatus) -> None:
        if status.is_online and self._was_online is not True:
            # Without a running loop the transition stays unrecorded so that
            # start() or the next status callback can still replay.
            if not self._spawn(self.process_queue()):
                return
        self._was_online = status.is_online

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> bool:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.debug("No running event loop, replay not scheduled")
            return False
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True
