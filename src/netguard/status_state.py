#!/usr/bin/env python3
"""Connectivity status value types.

This module provides the ConnectivityStatus snapshot broadcast by the
status monitor and the LinkInfo sample reported by connectivity sources.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ConnectionType(str, Enum):
    """Physical link type, as far as the platform can tell."""

    BLUETOOTH = "bluetooth"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    WIFI = "wifi"
    WIMAX = "wimax"
    NONE = "none"
    OTHER = "other"
    UNKNOWN = "unknown"


class EffectiveType(str, Enum):
    """Effective connection class derived from observed throughput."""

    SLOW_2G = "slow-2g"
    TWO_G = "2g"
    THREE_G = "3g"
    FOUR_G = "4g"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class LinkInfo:
    """Coarse link-quality sample reported by a connectivity source.

    Attributes:
        connection_type: Physical link type.
        effective_type: Effective connection class.
        downlink_mbps: Estimated downlink bandwidth in megabits per second.
        round_trip_ms: Estimated round-trip time in milliseconds.
        save_data: True if the user asked for reduced data usage.
    """

    connection_type: ConnectionType = ConnectionType.UNKNOWN
    effective_type: EffectiveType = EffectiveType.UNKNOWN
    downlink_mbps: float = 0.0
    round_trip_ms: int = 0
    save_data: bool = False

    def __post_init__(self) -> None:
        # Sources may report garbage; negative metrics read as "unknown".
        if self.downlink_mbps < 0:
            object.__setattr__(self, "downlink_mbps", 0.0)
        if self.round_trip_ms < 0:
            object.__setattr__(self, "round_trip_ms", 0)


@dataclass(frozen=True)
class ConnectivityStatus:
    """Snapshot of connectivity as seen by the status monitor.

    Recomputed on every StatusMonitor.get_status() call and never cached,
    so a caller always sees the latest known state.
    """

    is_online: bool
    connection_type: ConnectionType = ConnectionType.UNKNOWN
    effective_type: EffectiveType = EffectiveType.UNKNOWN
    downlink_mbps: float = 0.0
    round_trip_ms: int = 0
    save_data: bool = False

    @classmethod
    def from_link(cls, is_online: bool, link: LinkInfo) -> ConnectivityStatus:
        """Build a status from an online flag and a link sample."""
        return cls(
            is_online=is_online,
            connection_type=link.connection_type,
            effective_type=link.effective_type,
            downlink_mbps=link.downlink_mbps,
            round_trip_ms=link.round_trip_ms,
            save_data=link.save_data,
        )
