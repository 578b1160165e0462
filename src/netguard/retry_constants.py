#!/usr/bin/env python3
"""Constants for the retry engine.

Delays are in seconds. Each preset bundles max retries, base delay, delay
cap and backoff multiplier (delay = base * multiplier^retry, capped).
"""

# Defaults for execute_with_retry() when no config is given.
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_BASE_DELAY: float = 1.0
DEFAULT_MAX_DELAY: float = 30.0
DEFAULT_BACKOFF_FACTOR: float = 2.0

# Jitter multiplies the computed delay by a uniform factor in this range.
JITTER_MIN: float = 0.5
JITTER_MAX: float = 1.0

# Upper bound of the random stagger applied before waking parked
# operations when connectivity returns.
RECONNECT_STAGGER: float = 1.0

# Interactive operations: fail fast.
QUICK_MAX_RETRIES: int = 2
QUICK_BASE_DELAY: float = 0.5
QUICK_MAX_DELAY: float = 2.0
QUICK_BACKOFF_FACTOR: float = 1.5

# Most API calls.
STANDARD_MAX_RETRIES: int = 3
STANDARD_BASE_DELAY: float = 1.0
STANDARD_MAX_DELAY: float = 10.0
STANDARD_BACKOFF_FACTOR: float = 2.0

# Critical writes.
AGGRESSIVE_MAX_RETRIES: int = 5
AGGRESSIVE_BASE_DELAY: float = 2.0
AGGRESSIVE_MAX_DELAY: float = 30.0
AGGRESSIVE_BACKOFF_FACTOR: float = 2.0

# Background and low-priority work.
CONSERVATIVE_MAX_RETRIES: int = 3
CONSERVATIVE_BASE_DELAY: float = 5.0
CONSERVATIVE_MAX_DELAY: float = 60.0
CONSERVATIVE_BACKOFF_FACTOR: float = 3.0
