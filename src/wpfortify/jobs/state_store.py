"""Transient job state: a key-value store with per-entry expiry.

Interactive jobs are advanced by separate short-lived invocations (one
``wpfortify job poll`` per step), so the job blob lives in a store between
calls. Every write refreshes the entry's time-to-live; an entry that has
not been touched for ``ttl`` seconds is gone, which is how abandoned jobs
are collected.

Two implementations share the ``StateStore`` protocol:

- ``MemoryStateStore``: in-process dict, used by tests and by the
  scheduled path.
- ``FileStateStore``: one JSON file per key under a directory, used by
  the CLI so a job survives between processes.
"""

from __future__ import annotations

import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Protocol

from wpfortify.exceptions import InvalidStateKeyError, JobStateError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

_KEY_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


class StateStore(Protocol):
    """Get/set/delete of JSON-compatible values with time-to-live."""

    def get(self, key: str) -> dict[str, Any] | None: ...

    def set(self, key: str, value: dict[str, Any], ttl: int) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStateStore:
    """In-memory ``StateStore`` with an injectable clock."""

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}

    def get(self, key: str) -> dict[str, Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        # Round-trip through JSON so callers never share mutable state.
        return json.loads(json.dumps(value))

    def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        self._entries[key] = (self._clock() + ttl, json.loads(json.dumps(value)))

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class FileStateStore:
    """``StateStore`` persisting each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path, clock: Clock = time.time) -> None:
        self.directory = Path(directory)
        self._clock = clock

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise InvalidStateKeyError(f"Invalid state key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        if not path.is_file():
            return None
        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Discarding unreadable job state %s: %s", path, exc)
            return None
        if not isinstance(envelope, dict) or float(envelope.get("expires_at", 0)) <= self._clock():
            self.delete(key)
            return None
        value = envelope.get("value")
        return value if isinstance(value, dict) else None

    def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        path = self._path(key)
        envelope = {"expires_at": self._clock() + ttl, "value": value}
        tmp = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(envelope), encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise JobStateError(f"Cannot save job state {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise JobStateError(f"Cannot delete job state {key}: {exc}") from exc
