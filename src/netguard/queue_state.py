#!/usr/bin/env python3
"""Offline queue records.

This module provides the QueuedRequest dataclass persisted by the offline
queue, its priority ordering, and the QueueStatus and ReplayOutcome
summaries handed to callers.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from netguard.queue_constants import ALLOWED_METHODS, DEFAULT_MAX_RETRIES


class Priority(str, Enum):
    """Replay tier of a queued request."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank; lower replays first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


@dataclass
class QueuedRequest:
    """A mutating request deferred until connectivity returns.

    Attributes:
        id: Unique id assigned at enqueue time.
        url: Request URL.
        method: Upper-case HTTP method.
        body: JSON-serializable payload, or None.
        headers: Extra request headers.
        enqueued_at: Epoch seconds when the request was queued.
        retry_count: Failed replay attempts so far.
        max_retries: Replay attempts allowed before the request is dropped.
        priority: Replay tier.
    """

    id: str
    url: str
    method: str
    enqueued_at: float
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    priority: Priority = Priority.MEDIUM

    def sort_key(self) -> tuple[int, float]:
        """Priority tier first, then enqueue time."""
        return (self.priority.rank, self.enqueued_at)

    @property
    def exhausted(self) -> bool:
        return self.retry_count >= self.max_retries

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted JSON layout."""
        data = asdict(self)
        data["priority"] = self.priority.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueuedRequest:
        """Rebuild a request from its persisted layout.

        Raises:
            ValueError: If a field is missing or has an invalid value.
        """
        try:
            request = cls(
                id=str(data["id"]),
                url=str(data["url"]),
                method=str(data["method"]).upper(),
                enqueued_at=float(data["enqueued_at"]),
                body=data.get("body"),
                headers=dict(data.get("headers") or {}),
                retry_count=int(data.get("retry_count", 0)),
                max_retries=int(data.get("max_retries", DEFAULT_MAX_RETRIES)),
                priority=Priority(data.get("priority", Priority.MEDIUM.value)),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed queued request: {e}") from e
        if request.method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported method {request.method!r}")
        if request.retry_count < 0 or request.max_retries < 1:
            raise ValueError(f"Invalid retry counters on {request.id}")
        return request


@dataclass
class QueueStatus:
    """Summary of the queue for pending-request indicators.

    Attributes:
        total: Number of queued requests.
        by_priority: Count per priority tier, all tiers present.
        oldest_enqueued_at: Enqueue time of the oldest request, or None.
    """

    total: int
    by_priority: dict[Priority, int]
    oldest_enqueued_at: float | None


@dataclass
class ReplayOutcome:
    """Result of replaying one queued request.

    Attributes:
        request: The request as it stood after the attempt.
        succeeded: True if the server accepted it.
        error: Failure of the attempt, if any.
        gave_up: True if the request was dropped after its last attempt.
    """

    request: QueuedRequest
    succeeded: bool
    error: BaseException | None = None
    gave_up: bool = False
