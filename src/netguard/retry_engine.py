#!/usr/bin/env python3
"""Retry engine with exponential backoff, jitter and cancellation.

This module provides the RetryEngine, which runs an arbitrary coroutine
function and retries retryable failures using tenacity's AsyncRetrying.
The engine keeps a table of live operations so UI code can show in-flight
retries and cancel them, and it subscribes to the status monitor so that
operations parked in their first backoff wait are resumed as soon as
connectivity returns.

Each operation moves through pending (first attempt), retrying (later
attempts) and ends in exactly one of success, failed or aborted. Once
terminal, an operation is dropped from the table.
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Any

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt

from netguard.clock import Clock, SystemClock
from netguard.errors import OperationAborted
from netguard.retry_cancel import CancellationToken
from netguard.retry_config import (
    PRESETS,
    BackoffWait,
    RetryConfig,
    RetryPreset,
    get_preset,
    network_retry_on,
)
from netguard.retry_constants import RECONNECT_STAGGER

if TYPE_CHECKING:
    from netguard.status_monitor import StatusMonitor
    from netguard.status_state import ConnectivityStatus

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


class OperationStatus(str, Enum):
    """Lifecycle states of a retry operation."""

    PENDING = "pending"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILED = "failed"
    ABORTED = "aborted"


_TERMINAL = frozenset({OperationStatus.SUCCESS, OperationStatus.FAILED, OperationStatus.ABORTED})


@dataclass
class RetryOperation:
    """A logical call tracked through its attempts.

    Attributes:
        id: Unique operation id.
        config: Retry settings in effect.
        started_at: Monotonic time the operation started.
        attempts: Attempts made so far.
        status: Current lifecycle state.
        last_error: Exception from the most recent failed attempt.
        token: Engine-owned cancellation token used by cancel_operation().
        wake: Set to cut the current backoff wait short.
    """

    id: str
    config: RetryConfig
    started_at: float
    attempts: int = 0
    status: OperationStatus = OperationStatus.PENDING
    last_error: BaseException | None = None
    token: CancellationToken = field(default_factory=CancellationToken, repr=False)
    wake: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def cancelled(self) -> bool:
        external = self.config.cancel_token
        return self.token.cancelled or (external is not None and external.cancelled)

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL

    def transition(self, status: OperationStatus) -> bool:
        """Move to a new status unless already terminal.

        Returns:
            True if the status changed.
        """
        if self.is_terminal:
            return False
        self.status = status
        return True


@dataclass
class RetryResult:
    """Outcome of execute_with_retry().

    Attributes:
        success: True if an attempt succeeded.
        attempts: Number of attempts made.
        total_time: Seconds from start to completion.
        status: Final status (success, failed or aborted).
        data: Return value of the successful attempt.
        error: Last error for unsuccessful outcomes.
    """

    success: bool
    attempts: int
    total_time: float
    status: OperationStatus
    data: Any = None
    error: BaseException | None = None


def _is_retryable(config: RetryConfig, error: BaseException) -> bool:
    if isinstance(error, OperationAborted):
        return False
    return config.retry_on(error)


class RetryEngine:
    """Run operations with bounded retry.

    Args:
        monitor: Status monitor to subscribe to for reconnection handling.
        clock: Clock used for backoff waits and timing.
        rng: Random source for jitter and reconnect stagger.
        default_config: Config used when execute_with_retry() gets none.
        reconnect_stagger: Upper bound in seconds of the random delay
            before a parked operation is woken after reconnecting.
    """

    def __init__(
        self,
        monitor: StatusMonitor | None = None,
        *,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        default_config: RetryConfig | None = None,
        reconnect_stagger: float = RECONNECT_STAGGER,
    ) -> None:
        self._clock = clock if clock is not None else SystemClock()
        self._rng = rng if rng is not None else random.Random()
        self._default_config = default_config if default_config is not None else RetryConfig()
        self._reconnect_stagger = reconnect_stagger
        self._operations: dict[str, RetryOperation] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._was_online: bool | None = None
        self._unsubscribe = monitor.subscribe(self._on_status) if monitor is not None else None

    async def execute_with_retry(
        self, operation: Operation, config: RetryConfig | None = None
    ) -> RetryResult:
        """Run an operation, retrying retryable failures.

        Never raises for failures of the operation itself; the outcome is
        described by the returned RetryResult.

        Args:
            operation: Zero-argument coroutine function to run.
            config: Retry settings; the engine default if None.

        Returns:
            RetryResult with success flag, data or error, attempts and time.
        """
        config = config if config is not None else self._default_config
        op = RetryOperation(
            id=f"retry_{uuid.uuid4().hex[:12]}",
            config=config,
            started_at=self._clock.monotonic(),
        )
        self._operations[op.id] = op

        try:
            data = await self._run(op, operation)
        except Exception as e:
            aborted = op.cancelled or isinstance(e, OperationAborted)
            status = OperationStatus.ABORTED if aborted else OperationStatus.FAILED
            op.transition(status)
            if status is OperationStatus.ABORTED:
                logger.info("Operation %s aborted after %d attempt(s)", op.id, op.attempts)
            else:
                logger.warning("Operation %s failed after %d attempt(s): %s", op.id, op.attempts, e)
            return self._result(op, status, error=e)
        else:
            op.transition(OperationStatus.SUCCESS)
            return self._result(op, OperationStatus.SUCCESS, data=data)
        finally:
            self._operations.pop(op.id, None)

    async def retry_api_call(
        self, operation: Operation, preset: RetryPreset | str = RetryPreset.STANDARD
    ) -> Any:
        """Run an operation under a named preset, raising on failure.

        Args:
            operation: Zero-argument coroutine function to run.
            preset: Preset name (QUICK, STANDARD, AGGRESSIVE, CONSERVATIVE).

        Returns:
            The operation's return value.

        Raises:
            Exception: The last error once retries are exhausted, the
                terminal error, or OperationAborted.
        """
        result = await self.execute_with_retry(operation, get_preset(preset))
        if not result.success:
            raise result.error
        return result.data

    async def retry_network_operation(self, operation: Operation, **overrides: Any) -> Any:
        """Run an operation retrying only network failures, 5xx and 429.

        Starts from the STANDARD preset; keyword arguments override any
        RetryConfig field.

        Raises:
            Exception: The last error if the operation did not succeed.
        """
        config = PRESETS[RetryPreset.STANDARD].replace(retry_on=network_retry_on, **overrides)
        result = await self.execute_with_retry(operation, config)
        if not result.success:
            raise result.error
        return result.data

    def cancel_operation(self, operation_id: str) -> bool:
        """Abort a live operation.

        An attempt already in flight runs to completion; no further attempt
        is started and any backoff wait ends immediately.

        Returns:
            True if the operation was live, False otherwise.
        """
        op = self._operations.pop(operation_id, None)
        if op is None:
            return False
        op.transition(OperationStatus.ABORTED)
        op.token.cancel()
        logger.debug("Cancelled operation %s", operation_id)
        return True

    def get_operation_status(self, operation_id: str) -> RetryOperation | None:
        return self._operations.get(operation_id)

    def get_all_operations(self) -> list[RetryOperation]:
        return list(self._operations.values())

    def get_active_operations_count(self) -> int:
        return sum(
            1
            for op in self._operations.values()
            if op.status in (OperationStatus.PENDING, OperationStatus.RETRYING)
        )

    async def dispose(self) -> None:
        """Unsubscribe from the monitor and abort every live operation."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        for op_id in list(self._operations):
            self.cancel_operation(op_id)

    async def _run(self, op: RetryOperation, operation: Operation) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(op.config.max_retries + 1),
            wait=BackoffWait(op.config, self._rng),
            retry=retry_if_exception(partial(_is_retryable, op.config)),
            sleep=partial(self._wait_backoff, op),
            reraise=True,
        )
        return await retrying(self._attempt, op, operation)

    async def _attempt(self, op: RetryOperation, operation: Operation) -> Any:
        if op.cancelled:
            raise OperationAborted(f"Operation {op.id} aborted")
        op.attempts += 1
        op.transition(OperationStatus.PENDING if op.attempts == 1 else OperationStatus.RETRYING)
        try:
            return await operation()
        except Exception as e:
            op.last_error = e
            logger.debug("Operation %s attempt %d failed: %s", op.id, op.attempts, e)
            raise

    async def _wait_backoff(self, op: RetryOperation, seconds: float) -> None:
        """Sleep before the next attempt, ending early on cancel or wake.

        Raises:
            OperationAborted: If the operation was cancelled before or
                during the wait.
        """
        if op.cancelled:
            raise OperationAborted(f"Operation {op.id} aborted")
        logger.debug("Retrying operation %s in %.2fs", op.id, seconds)

        op.wake.clear()
        waiters = [
            asyncio.create_task(self._clock.sleep(seconds)),
            asyncio.create_task(op.token.wait()),
            asyncio.create_task(op.wake.wait()),
        ]
        if op.config.cancel_token is not None:
            waiters.append(asyncio.create_task(op.config.cancel_token.wait()))
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in waiters:
                task.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

        if op.cancelled:
            raise OperationAborted(f"Operation {op.id} aborted")

    def _on_status(self, status: ConnectivityStatus) -> None:
        was_online = self._was_online
        self._was_online = status.is_online
        if status.is_online and was_online is False:
            self._resume_parked()

    def _resume_parked(self) -> None:
        parked = [
            op
            for op in self._operations.values()
            if op.status is OperationStatus.PENDING and op.last_error is not None
        ]
        logger.info("Back online, resuming %d parked operation(s)", len(parked))
        for op in parked:
            self._spawn(self._wake_after(op, self._rng.uniform(0, self._reconnect_stagger)))

    async def _wake_after(self, op: RetryOperation, delay: float) -> None:
        await self._clock.sleep(delay)
        if op.id in self._operations:
            op.wake.set()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.debug("No running event loop, skipping reconnect wake-up")
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _result(
        self,
        op: RetryOperation,
        status: OperationStatus,
        data: Any = None,
        error: BaseException | None = None,
    ) -> RetryResult:
        return RetryResult(
            success=status is OperationStatus.SUCCESS,
            attempts=op.attempts,
            total_time=self._clock.monotonic() - op.started_at,
            status=status,
            data=data,
            error=error,
        )
