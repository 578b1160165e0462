#!/usr/bin/env python3
"""Constants for the offline request queue."""

# Key under which the serialized queue is stored.
STORAGE_KEY: str = "network_request_queue"

# Pause between successive replays in seconds, to avoid bursting the server.
REPLAY_INTERVAL: float = 0.1

# Replay attempts before a queued request is dropped.
DEFAULT_MAX_RETRIES: int = 3

# Methods accepted by enqueue(). Only the mutating ones are normally queued.
ALLOWED_METHODS: frozenset[str] = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})
MUTATING_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Methods whose body is sent as JSON on replay.
BODY_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH"})
