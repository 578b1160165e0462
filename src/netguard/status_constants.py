#!/usr/bin/env python3
"""Constants for the status monitor liveness probe."""

# Interval between liveness probes in seconds.
CONNECTION_CHECK_INTERVAL: float = 30.0

# Health endpoint probed to tell "link up" apart from "application reachable".
HEALTH_URL: str = "/api/v1/health"

# Timeout for a single liveness probe in seconds.
PROBE_TIMEOUT: float = 5.0
