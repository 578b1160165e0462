#!/usr/bin/env python3
"""Retry configuration, retry predicates and backoff computation.

This module provides:
- RetryConfig: per-call retry settings
- RetryPreset / PRESETS: named configurations for common scenarios
- default_retry_on(), network_retry_on(): retry predicates
- compute_delay(): backoff delay for a given retry
- BackoffWait: tenacity wait strategy wrapping compute_delay()
"""

from __future__ import annotations

import dataclasses
import random
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from tenacity.wait import wait_base

from netguard.errors import FailureKind, classify_error
from netguard.retry_constants import (
    AGGRESSIVE_BACKOFF_FACTOR,
    AGGRESSIVE_BASE_DELAY,
    AGGRESSIVE_MAX_DELAY,
    AGGRESSIVE_MAX_RETRIES,
    CONSERVATIVE_BACKOFF_FACTOR,
    CONSERVATIVE_BASE_DELAY,
    CONSERVATIVE_MAX_DELAY,
    CONSERVATIVE_MAX_RETRIES,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_DELAY,
    DEFAULT_MAX_RETRIES,
    JITTER_MAX,
    JITTER_MIN,
    QUICK_BACKOFF_FACTOR,
    QUICK_BASE_DELAY,
    QUICK_MAX_DELAY,
    QUICK_MAX_RETRIES,
    STANDARD_BACKOFF_FACTOR,
    STANDARD_BASE_DELAY,
    STANDARD_MAX_DELAY,
    STANDARD_MAX_RETRIES,
)

if TYPE_CHECKING:
    from tenacity import RetryCallState

    from netguard.retry_cancel import CancellationToken

# Statuses that indicate a transient server-side condition.
_RETRYABLE_STATUSES = frozenset({408, 429})


def default_retry_on(error: BaseException) -> bool:
    """Decide whether a failure is transient.

    Retries network failures (no response at all), HTTP 5xx, 408, 429 and
    timeouts. Every other failure is terminal.

    Args:
        error: The exception raised by the attempt.

    Returns:
        True if the operation should be retried.
    """
    failure = classify_error(error)
    if failure.kind in (FailureKind.NETWORK, FailureKind.TIMEOUT):
        return True
    if failure.kind is FailureKind.HTTP_STATUS and failure.status is not None:
        return failure.status >= 500 or failure.status in _RETRYABLE_STATUSES
    return False


def network_retry_on(error: BaseException) -> bool:
    """Narrower predicate: network failures, HTTP 5xx and 429 only."""
    failure = classify_error(error)
    if failure.kind is FailureKind.NETWORK:
        return True
    if failure.kind is FailureKind.HTTP_STATUS and failure.status is not None:
        return failure.status >= 500 or failure.status == 429
    return False


@dataclass(frozen=True)
class RetryConfig:
    """Retry settings for a single operation.

    Attributes:
        max_retries: Retries after the first attempt (0 disables retrying).
        base_delay: Delay before the first retry in seconds.
        max_delay: Upper bound for any single delay in seconds.
        backoff_factor: Multiplier applied per retry, must exceed 1.
        jitter: Scale each delay by a random factor in [0.5, 1.0].
        retry_on: Predicate deciding whether a failure is retryable.
        cancel_token: Optional caller-owned cancellation token.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    jitter: bool = True
    retry_on: Callable[[BaseException], bool] = default_retry_on
    cancel_token: CancellationToken | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ValueError(f"max_delay {self.max_delay} is below base_delay {self.base_delay}")
        if self.backoff_factor <= 1:
            raise ValueError(f"backoff_factor must be > 1, got {self.backoff_factor}")

    def replace(self, **changes: object) -> RetryConfig:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)


class RetryPreset(str, Enum):
    """Named retry scenarios."""

    QUICK = "QUICK"
    STANDARD = "STANDARD"
    AGGRESSIVE = "AGGRESSIVE"
    CONSERVATIVE = "CONSERVATIVE"


PRESETS: dict[RetryPreset, RetryConfig] = {
    RetryPreset.QUICK: RetryConfig(
        max_retries=QUICK_MAX_RETRIES,
        base_delay=QUICK_BASE_DELAY,
        max_delay=QUICK_MAX_DELAY,
        backoff_factor=QUICK_BACKOFF_FACTOR,
    ),
    RetryPreset.STANDARD: RetryConfig(
        max_retries=STANDARD_MAX_RETRIES,
        base_delay=STANDARD_BASE_DELAY,
        max_delay=STANDARD_MAX_DELAY,
        backoff_factor=STANDARD_BACKOFF_FACTOR,
    ),
    RetryPreset.AGGRESSIVE: RetryConfig(
        max_retries=AGGRESSIVE_MAX_RETRIES,
        base_delay=AGGRESSIVE_BASE_DELAY,
        max_delay=AGGRESSIVE_MAX_DELAY,
        backoff_factor=AGGRESSIVE_BACKOFF_FACTOR,
    ),
    RetryPreset.CONSERVATIVE: RetryConfig(
        max_retries=CONSERVATIVE_MAX_RETRIES,
        base_delay=CONSERVATIVE_BASE_DELAY,
        max_delay=CONSERVATIVE_MAX_DELAY,
        backoff_factor=CONSERVATIVE_BACKOFF_FACTOR,
    ),
}


def get_preset(name: RetryPreset | str) -> RetryConfig:
    """Look up a preset by enum member or case-insensitive name.

    Raises:
        ValueError: If no preset has that name.
    """
    try:
        return PRESETS[RetryPreset(name.upper())]
    except ValueError:
        raise ValueError(f"Unknown retry preset: {name!r}") from None


def compute_delay(retry_index: int, config: RetryConfig, rng: random.Random | None = None) -> float:
    """Compute the backoff delay before a retry.

    delay = min(base_delay * backoff_factor ** retry_index, max_delay),
    scaled by a uniform factor in [0.5, 1.0] when jitter is enabled.

    Args:
        retry_index: Zero-based retry number (0 for the delay before the
            second attempt).
        config: Retry settings.
        rng: Random source for jitter; the module-level generator if None.

    Returns:
        Delay in seconds.
    """
    delay = min(config.base_delay * config.backoff_factor**retry_index, config.max_delay)
    if config.jitter:
        source = rng if rng is not None else random
        delay *= source.uniform(JITTER_MIN, JITTER_MAX)
    return delay


class BackoffWait(wait_base):
    """Tenacity wait strategy applying compute_delay() to the retry count."""

    def __init__(self, config: RetryConfig, rng: random.Random | None = None) -> None:
        self.config = config
        self.rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        # attempt_number counts attempts already made, starting at 1.
        return compute_delay(retry_state.attempt_number - 1, self.config, self.rng)
