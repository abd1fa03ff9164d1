"""Generic key-value store used by the response cache and the cost controller.

Production deployments plug a distributed store in behind the same interface;
InMemoryKeyValueStore is the process-local implementation used by default and in tests.
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple


class KeyValueStore:
    """Minimal key-value contract with per-key expiry."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def keys(self, prefix: str = "") -> List[str]:
        raise NotImplementedError

    def incr(self, key: str, amount: float = 1.0, ttl_seconds: Optional[float] = None) -> float:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Thread-safe dict-backed store. Expired keys are dropped lazily on access.

    Args:
        clock: Time source in seconds; injectable so tests can move time forward.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _alive(self, key: str) -> bool:
        item = self._data.get(key)
        if item is None:
            return False
        _, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return False
        return True

    def _expiry(self, ttl_seconds: Optional[float]) -> Optional[float]:
        return None if ttl_seconds is None else self._clock() + ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if not self._alive(key):
                return None
            return self._data[key][0]

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        with self._lock:
            self._data[key] = (value, self._expiry(ttl_seconds))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [k for k in list(self._data) if k.startswith(prefix) and self._alive(k)]

    def incr(self, key: str, amount: float = 1.0, ttl_seconds: Optional[float] = None) -> float:
        """Add `amount` to a numeric key. The expiry is set only when the key is created."""
        with self._lock:
            if self._alive(key):
                value, expires_at = self._data[key]
                new_value = value + amount
                self._data[key] = (new_value, expires_at)
            else:
                new_value = amount
                self._data[key] = (new_value, self._expiry(ttl_seconds))
            return new_value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
