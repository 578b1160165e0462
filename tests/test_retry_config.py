#!/usr/bin/env python3
"""Tests for retry predicates, presets and backoff computation."""
import random

import pytest

from netguard.errors import FailureKind, RequestFailure
from netguard.retry_config import (
    PRESETS,
    RetryConfig,
    RetryPreset,
    compute_delay,
    default_retry_on,
    get_preset,
    network_retry_on,
)


def _http(status: int) -> RequestFailure:
    return RequestFailure(FailureKind.HTTP_STATUS, f"HTTP {status}", status=status)


@pytest.mark.parametrize("status", [500, 502, 503, 504, 408, 429])
def test_default_retry_on_transient_statuses(status: int) -> None:
    """Test 5xx, 408 and 429 are retryable."""
    assert default_retry_on(_http(status)) is True


@pytest.mark.parametrize("status", [400, 401, 403, 404, 409, 422])
def test_default_retry_on_client_errors_are_terminal(status: int) -> None:
    """Test other 4xx statuses are terminal."""
    assert default_retry_on(_http(status)) is False


def test_default_retry_on_network_and_timeout() -> None:
    """Test failures without a response and timeouts are retryable."""
    assert default_retry_on(ConnectionRefusedError()) is True
    assert default_retry_on(RequestFailure(FailureKind.TIMEOUT, "t")) is True


def test_default_retry_on_other_errors() -> None:
    """Test programming errors are not retried."""
    assert default_retry_on(ValueError("bad")) is False


def test_network_retry_on_is_narrower() -> None:
    """Test network_retry_on skips 408 and timeouts."""
    assert network_retry_on(ConnectionError()) is True
    assert network_retry_on(_http(503)) is True
    assert network_retry_on(_http(429)) is True
    assert network_retry_on(_http(408)) is False
    assert network_retry_on(RequestFailure(FailureKind.TIMEOUT, "t")) is False


def test_compute_delay_without_jitter_is_exact() -> None:
    """Test unjittered delay is min(base * factor^k, max)."""
    config = RetryConfig(base_delay=1.0, max_delay=10.0, backoff_factor=2.0, jitter=False)
    assert [compute_delay(k, config) for k in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]


def test_compute_delay_with_jitter_is_within_bounds() -> None:
    """Test jittered delays stay within [0.5, 1.0] of the unjittered value."""
    rng = random.Random(7)
    config = RetryConfig(base_delay=0.5, max_delay=20.0, backoff_factor=3.0, jitter=True)
    plain = config.replace(jitter=False)
    for k in range(6):
        expected = compute_delay(k, plain)
        for _ in range(50):
            delay = compute_delay(k, config, rng)
            assert 0.5 * expected <= delay <= expected


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_retries": -1},
        {"backoff_factor": 1.0},
        {"base_delay": -0.1},
        {"base_delay": 5.0, "max_delay": 1.0},
    ],
)
def test_retry_config_rejects_invalid_values(kwargs: dict) -> None:
    """Test invalid settings raise ValueError."""
    with pytest.raises(ValueError):
        RetryConfig(**kwargs)


def test_presets_exist_and_are_ordered() -> None:
    """Test all presets exist and delay caps grow with aggressiveness."""
    assert set(PRESETS) == set(RetryPreset)
    quick = PRESETS[RetryPreset.QUICK]
    standard = PRESETS[RetryPreset.STANDARD]
    aggressive = PRESETS[RetryPreset.AGGRESSIVE]
    conservative = PRESETS[RetryPreset.CONSERVATIVE]
    assert aggressive.max_delay >= standard.max_delay >= quick.max_delay
    assert aggressive.max_retries > standard.max_retries > quick.max_retries
    assert conservative.base_delay > standard.base_delay
    assert standard.max_retries == 3


def test_get_preset_accepts_names_and_members() -> None:
    """Test lookup by member and case-insensitive name."""
    assert get_preset(RetryPreset.QUICK) is PRESETS[RetryPreset.QUICK]
    assert get_preset("aggressive") is PRESETS[RetryPreset.AGGRESSIVE]


def test_get_preset_unknown_name() -> None:
    """Test unknown preset names raise ValueError."""
    with pytest.raises(ValueError, match="Unknown retry preset"):
        get_preset("reckless")
