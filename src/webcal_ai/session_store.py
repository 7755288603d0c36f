"""Durable per-tab session storage.

A :class:`KeyValueStore` holds JSON-compatible values with an optional
expiry.  :class:`SessionRepository` layers the session rules on top:

- one snapshot per tab under ``tab_<id>_state``;
- a snapshot is only restored while it is *fresh* (written within the
  last hour); stale or corrupt snapshots are deleted on load;
- :meth:`SessionRepository.cleanup` sweeps snapshots older than a day.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from webcal_ai.models.session import SessionState

logger = logging.getLogger(__name__)

FRESHNESS_SECONDS = 3600.0
CLEANUP_MAX_AGE_SECONDS = 24 * 3600.0

Clock = Callable[[], float]


# ---------------------------------------------------------------------------
# Key-value stores
# ---------------------------------------------------------------------------


class KeyValueStore(Protocol):
    """Minimal durable key-value store."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: float | None = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryStore:
    """In-process store; expired entries read as absent."""

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[Any, float | None]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._entries)


class JsonFileStore:
    """Store backed by a single JSON file.

    Each entry is kept as ``{"value": ..., "expires_at": <epoch|null>}``.
    Writes go to a temporary file that replaces the original, so a crash
    never leaves a half-written store behind.  An unreadable file is
    treated as empty.

    Args:
        path: Location of the JSON file.  Parent directories are created
            on first write.
        clock: Returns the current epoch time in seconds.
    """

    def __init__(self, path: Path, clock: Clock = time.time) -> None:
        self._path = Path(path)
        self._clock = clock

    def get(self, key: str) -> Any | None:
        data = self._read()
        entry = data.get(key)
        if not isinstance(entry, dict):
            return None
        expires_at = entry.get("expires_at")
        if expires_at is not None and self._clock() >= float(expires_at):
            del data[key]
            self._write(data)
            return None
        return entry.get("value")

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        data = self._read()
        expires_at = self._clock() + ttl if ttl is not None else None
        data[key] = {"value": value, "expires_at": expires_at}
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def keys(self) -> list[str]:
        return list(self._read())

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable session store %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


# ---------------------------------------------------------------------------
# Session repository
# ---------------------------------------------------------------------------


def state_key(tab_id: str) -> str:
    """Return the storage key for *tab_id*'s snapshot."""
    return f"tab_{tab_id}_state"


class SessionRepository:
    """Load and save :class:`SessionState` snapshots.

    Args:
        store: Backing key-value store.
        clock: Returns the current epoch time in seconds.
        freshness: Maximum age, in seconds, of a restorable snapshot.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock = time.time,
        freshness: float = FRESHNESS_SECONDS,
    ) -> None:
        self._store = store
        self._clock = clock
        self._freshness = freshness

    def save(self, state: SessionState) -> None:
        """Stamp *state* with the current time and persist it."""
        state.timestamp = self._clock()
        self._store.set(state_key(state.tab_id), state.to_dict(), ttl=CLEANUP_MAX_AGE_SECONDS)
        logger.debug("Saved session for tab %s at stage %s", state.tab_id, state.stage.value)

    def load(self, tab_id: str) -> SessionState | None:
        """Return the fresh snapshot for *tab_id*, or ``None``.

        Stale and corrupt snapshots are deleted.
        """
        key = state_key(tab_id)
        data = self._store.get(key)
        if data is None:
            return None

        state = self._decode(key, data)
        if state is None:
            return None

        age = self._clock() - state.timestamp
        if age > self._freshness:
            logger.info("Discarding stale session for tab %s (%.0fs old)", tab_id, age)
            self._store.delete(key)
            return None
        return state

    def discard(self, tab_id: str) -> None:
        self._store.delete(state_key(tab_id))

    def cleanup(self, max_age: float = CLEANUP_MAX_AGE_SECONDS) -> int:
        """Delete snapshots older than *max_age* seconds.

        Returns:
            The number of snapshots removed.
        """
        now = self._clock()
        removed = 0
        for key in self._store.keys():
            if not (key.startswith("tab_") and key.endswith("_state")):
                continue
            data = self._store.get(key)
            if data is None:
                # Expired in the store; reading it removed it.
                removed += 1
                continue
            state = self._decode(key, data)
            if state is None:
                removed += 1
            elif now - state.timestamp > max_age:
                self._store.delete(key)
                removed += 1
        if removed:
            logger.info("Cleaned up %d old session(s)", removed)
        return removed

    def _decode(self, key: str, data: Any) -> SessionState | None:
        try:
            return SessionState.from_dict(data)
        except (KeyError, ValueError, TypeError) as exc:
            logger.warning("Discarding corrupt session %s: %s", key, exc)
            self._store.delete(key)
            return None
