#!/usr/bin/env python3
"""Connectivity sources for the status monitor.

A connectivity source is the platform's raw view of the link: whether an
interface is up and what kind of link it is. The monitor layers its own
reachability probe on top. Sources notify the monitor through zero-argument
listeners so the monitor always re-reads the full state after a change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from netguard.status_state import LinkInfo

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ConnectivitySource(Protocol):
    """Platform capability reporting raw connectivity."""

    def is_online(self) -> bool:
        ...

    def link_info(self) -> LinkInfo:
        ...

    def add_listener(self, listener: Listener) -> None:
        ...

    def remove_listener(self, listener: Listener) -> None:
        ...


class ManualConnectivitySource:
    """Connectivity source whose state is set by the host application.

    Hosts that learn about connectivity from somewhere else (a UI shell,
    a network manager callback, a test) push the state in with set_online()
    and set_link_info(). Listeners fire only when the state actually
    changes.
    """

    def __init__(self, online: bool = True, link: LinkInfo | None = None) -> None:
        self._online = online
        self._link = link if link is not None else LinkInfo()
        self._listeners: list[Listener] = []

    def is_online(self) -> bool:
        return self._online

    def link_info(self) -> LinkInfo:
        return self._link

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_online(self, online: bool) -> None:
        """Record a raw online/offline transition."""
        if online == self._online:
            return
        self._online = online
        logger.debug("Link reported %s", "online" if online else "offline")
        self._fire()

    def set_link_info(self, link: LinkInfo) -> None:
        """Record a change in link type or quality."""
        if link == self._link:
            return
        self._link = link
        self._fire()

    def _fire(self) -> None:
        for listener in list(self._listeners):
            listener()
