#!/usr/bin/env python3
"""Local key-value stores for persisting the offline queue.

Values are JSON-compatible Python objects. Stores raise on I/O problems;
the offline queue decides how to degrade.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import suppress
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a store cannot read or write its backing data."""

    pass


class KeyValueStore(Protocol):
    """Minimal persistent key-value interface."""

    def get(self, key: str) -> Any:
        """Return the value for key, or None if absent."""
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStore:
    """Store kept in a dict; values are round-tripped through JSON.

    Round-tripping keeps behavior identical to JsonFileStore, so a value
    that could not be persisted to disk fails here too.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupt value under {key!r}: {e}") from e

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Value under {key!r} is not serializable: {e}") from e

    def set_raw(self, key: str, raw: str) -> None:
        """Store an unparsed string, e.g. to simulate corrupted storage."""
        self._data[key] = raw

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Store backed by a single JSON object file.

    Every write rewrites the file through a temporary file and an atomic
    rename, so a crash mid-write leaves the previous contents intact.

    Args:
        path: Location of the JSON file. Parent directories are created on
            first write.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get(self, key: str) -> Any:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read_for_update()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read_for_update()
        if key in data:
            del data[key]
            self._write(data)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Expected a JSON object in {self.path}")
        return data

    def _read_for_update(self) -> dict[str, Any]:
        # A corrupt file must not block writes; start over instead.
        try:
            return self._read()
        except StoreError as e:
            logger.warning("Discarding unreadable store: %s", e)
            return {}

    def _write(self, data: dict[str, Any]) -> None:
        try:
            payload = json.dumps(data, indent=2)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Data for {self.path} is not serializable: {e}") from e
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".netguard-", suffix=".tmp")
        except OSError as e:
            raise StoreError(f"Cannot write {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            with suppress(OSError):
                os.unlink(tmp_name)
            raise StoreError(f"Cannot write {self.path}: {e}") from e
