"""Thread-safe expiring cache with single-flight loading."""

import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, TypeVar

import structlog

logger = structlog.get_logger()

V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    written_at: float
    accessed_at: float


class EntityCache(Generic[V]):
    """Key/value cache with optional access and write expiry.

    - Values are replaced whole; ``put`` is last-writer-wins.
    - ``get`` runs at most one loader per missing key. Concurrent callers for
      the same key wait on the in-flight load and share its outcome.
    - Failed loads, including not-found, are never cached.
    """

    def __init__(
        self,
        access_expiry_seconds: Optional[int] = None,
        write_expiry_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.access_expiry = self._normalize(access_expiry_seconds)
        self.write_expiry = self._normalize(write_expiry_seconds)
        self.clock = clock

        self._entries: Dict[str, _Entry[V]] = {}
        self._loading: Dict[str, Future] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _normalize(seconds: Optional[int]) -> Optional[int]:
        if seconds is None or seconds < 0:
            return None
        return seconds

    def _is_expired(self, entry: _Entry[V], now: float) -> bool:
        if self.write_expiry is not None and now - entry.written_at >= self.write_expiry:
            return True
        if self.access_expiry is not None and now - entry.accessed_at >= self.access_expiry:
            return True
        return False

    def _live_entry(self, key: str, now: float) -> Optional[_Entry[V]]:
        """Return the live entry for key, dropping it if expired. Must be called under lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, now):
            del self._entries[key]
            return None
        return entry

    def get_if_present(self, key: str) -> Optional[V]:
        with self._lock:
            now = self.clock()
            entry = self._live_entry(key, now)
            if entry is None:
                return None
            entry.accessed_at = now
            return entry.value

    def get(self, key: str, loader: Callable[[str], V]) -> V:
        """Get a cached value, loading it once on a miss.

        Args:
            key: Cache key
            loader: Called with ``key`` on a miss; its exceptions propagate
                to every caller waiting on the same key

        Returns:
            The cached or freshly loaded value
        """
        with self._lock:
            now = self.clock()
            entry = self._live_entry(key, now)
            if entry is not None:
                entry.accessed_at = now
                return entry.value

            future = self._loading.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._loading[key] = future

        if not owner:
            return future.result()

        try:
            value = loader(key)
        except BaseException as exc:
            with self._lock:
                self._loading.pop(key, None)
            future.set_exception(exc)
            raise

        with self._lock:
            now = self.clock()
            self._entries[key] = _Entry(value=value, written_at=now, accessed_at=now)
            self._loading.pop(key, None)
        future.set_result(value)
        return value

    def put(self, key: str, value: V) -> None:
        with self._lock:
            now = self.clock()
            self._entries[key] = _Entry(value=value, written_at=now, accessed_at=now)

    def invalidate(self, key: str) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                logger.debug("Invalidated cache entry", key=key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> List[str]:
        """Keys of live entries. Reading keys does not count as access."""
        with self._lock:
            now = self.clock()
            return [k for k, e in self._entries.items() if not self._is_expired(e, now)]

    def values(self) -> List[V]:
        """Snapshot of live values."""
        with self._lock:
            now = self.clock()
            return [e.value for e in self._entries.values() if not self._is_expired(e, now)]

    def size(self) -> int:
        return len(self.keys())
