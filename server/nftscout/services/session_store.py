"""Session-scoped key-value stores with TTL semantics.

The trending aggregator only needs get/set/delete/clear. Stores are best
effort: callers treat a failed read as a miss and a failed write as a no-op.
"""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

from nftscout.core.time import monotonic

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str, ttl: float | None = None) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...


class MemorySessionStore(KeyValueStore):
    """Process-local store; entries vanish on restart like a browser session."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at is not None and monotonic() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: float | None = None) -> None:
        expires_at = monotonic() + ttl if ttl is not None else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class FileSessionStore(KeyValueStore):
    """JSON file store that survives restarts (the persisted-tab variant).

    Expiry is stored as epoch seconds so it stays valid across processes.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, dict]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Failed to read session store %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            logger.warning("Failed to write session store %s: %s", self.path, e)

    def get(self, key: str) -> str | None:
        with self._lock:
            data = self._read()
            item = data.get(key)
            if not isinstance(item, dict):
                return None
            expires_at = item.get("expires_at")
            if expires_at is not None and time.time() >= expires_at:
                del data[key]
                self._write(data)
                return None
            value = item.get("value")
            return value if isinstance(value, str) else None

    def set(self, key: str, value: str, ttl: float | None = None) -> None:
        with self._lock:
            data = self._read()
            data[key] = {
                "value": value,
                "expires_at": time.time() + ttl if ttl is not None else None,
            }
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)

    def clear(self) -> None:
        with self._lock:
            self._write({})


def create_session_store(path: str = "") -> KeyValueStore:
    """File-backed store when a path is configured, in-memory otherwise."""
    if path:
        return FileSessionStore(path)
    return MemorySessionStore()
