#!/usr/bin/env python3
"""
Failure taxonomy for network calls.

Every failure that reaches a retry predicate or the offline queue is first
normalized into a RequestFailure carrying one of four kinds:

- NETWORK: no response was received at all (connection refused, DNS, reset)
- HTTP_STATUS: the server answered with a non-success status code
- TIMEOUT: the call did not complete in time
- OTHER: anything else (programming errors, decoding errors)

Predicates then inspect the kind and status instead of probing optional
attributes on arbitrary exception objects.
"""
from __future__ import annotations

import asyncio
from enum import Enum

import httpx


class FailureKind(str, Enum):
    """Coarse classification of a failed network call."""

    NETWORK = "network"
    HTTP_STATUS = "http_status"
    TIMEOUT = "timeout"
    OTHER = "other"


class RequestFailure(Exception):
    """
    Exception raised for a failed network call.

    Attributes:
        kind: The FailureKind of this failure.
        status: HTTP status code for HTTP_STATUS failures, otherwise None.
    """

    def __init__(self, kind: FailureKind, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status

    @property
    def is_network(self) -> bool:
        return self.kind is FailureKind.NETWORK

    @property
    def is_timeout(self) -> bool:
        return self.kind is FailureKind.TIMEOUT

    @property
    def is_client_error(self) -> bool:
        return self.status is not None and 400 <= self.status < 500

    @property
    def is_server_error(self) -> bool:
        return self.status is not None and self.status >= 500

    def __repr__(self) -> str:
        return f"RequestFailure(kind={self.kind.value!r}, status={self.status!r}, message={str(self)!r})"


class OperationAborted(Exception):
    """Raised when a retry operation is cancelled before it completes."""

    pass


class QueuedForLater(Exception):
    """
    Raised when a mutating request was deferred to the offline queue.

    Callers should present this as "saved, will be sent when back online"
    rather than as a hard failure.

    Attributes:
        request_id: Id of the queued request, usable with remove_from_queue().
    """

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Request queued for later delivery ({request_id})")
        self.request_id = request_id


def classify_error(error: BaseException) -> RequestFailure:
    """
    Normalize an arbitrary exception into a RequestFailure.

    Args:
        error: The exception raised by a network call.

    Returns:
        The error itself if it is already a RequestFailure, otherwise a new
        RequestFailure describing it.
    """
    if isinstance(error, RequestFailure):
        return error
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return RequestFailure(FailureKind.HTTP_STATUS, f"HTTP {status}", status=status)
    if isinstance(error, (httpx.TimeoutException, TimeoutError, asyncio.TimeoutError)):
        return RequestFailure(FailureKind.TIMEOUT, str(error) or "timeout")
    if isinstance(error, (httpx.TransportError, ConnectionError, OSError)):
        return RequestFailure(FailureKind.NETWORK, str(error) or "network failure")
    return RequestFailure(FailureKind.OTHER, str(error) or type(error).__name__)


# User-facing messages for failures, keyed by HTTP status.
_STATUS_MESSAGES: dict[int, str] = {
    400: "Invalid request. Please check your input.",
    401: "Authentication required. Please log in.",
    403: "You do not have permission to perform this action.",
    404: "The requested resource was not found.",
    408: "The request timed out. Please try again.",
    422: "Validation failed. Please check your input.",
    429: "Too many requests. Please try again later.",
    500: "Internal server error. Please try again later.",
    502: "Service temporarily unavailable. Please try again later.",
    503: "Service unavailable. Please try again later.",
}


def describe_failure(error: BaseException) -> str:
    """
    Return a message suitable for showing to a user.

    Args:
        error: Any exception raised by the client wrapper.

    Returns:
        A short human-readable explanation.
    """
    if isinstance(error, QueuedForLater):
        return "You are offline. The change was saved and will be sent when you reconnect."
    if isinstance(error, OperationAborted):
        return "The request was cancelled."
    failure = classify_error(error)
    if failure.kind is FailureKind.NETWORK:
        return "Network error. Please check your connection."
    if failure.kind is FailureKind.TIMEOUT:
        return "The request timed out. Please try again."
    if failure.status is not None:
        return _STATUS_MESSAGES.get(failure.status, "Something went wrong. Please try again.")
    return "Something went wrong. Please try again."
