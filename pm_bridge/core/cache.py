"""In-memory cache with per-entry TTL, shared by every provider client."""

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union


@dataclass
class CacheEntry:
    """Stored value and its absolute expiry on the cache clock."""
    value: Any
    expires_at: float


class ExpiringCache:
    """Key/value store with per-entry TTL and forced-refresh bypass.

    Expiry is enforced on read: an expired entry is removed and reported as
    absent. A background sweep additionally evicts expired entries every
    ``cleanup_interval`` seconds to bound memory; pass ``0`` to disable it.
    """

    def __init__(
        self,
        cleanup_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._cleanup_thread: Optional[threading.Thread] = None
        self.logger = logging.getLogger(__name__)

        if cleanup_interval > 0:
            self._cleanup_thread = threading.Thread(
                target=self._cleanup_loop,
                daemon=True,
                name="CacheCleanup"
            )
            self._cleanup_thread.start()

    def get(self, key: str, force_refresh: bool = False, default: Any = None) -> Any:
        """Return the live value for ``key`` or ``default``.

        Args:
            key: Cache key
            force_refresh: Report a miss without touching the stored entry
            default: Value returned on a miss
        """
        if force_refresh:
            return default

        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return default

            if self._clock() >= entry.expires_at:
                del self._store[key]
                return default

            return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store ``value`` for ``ttl`` seconds, replacing any previous entry."""
        expires_at = self._clock() + ttl
        with self._lock:
            self._store[key] = CacheEntry(value=value, expires_at=expires_at)

    def has(self, key: str) -> bool:
        """Check if a non-expired entry exists."""
        missing = object()
        return self.get(key, default=missing) is not missing

    def delete(self, key: str) -> None:
        """Remove a specific key."""
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._store.clear()

    @property
    def size(self) -> int:
        """Number of stored entries, including expired ones not yet evicted."""
        with self._lock:
            return len(self._store)

    def __len__(self) -> int:
        return self.size

    def evict_expired(self) -> int:
        """Remove all expired entries and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._store.items() if now >= entry.expires_at]
            for key in expired:
                del self._store[key]

        if expired:
            self.logger.debug(f"Evicted {len(expired)} expired cache entries")
        return len(expired)

    def destroy(self) -> None:
        """Stop the background sweep and drop all entries. Safe to call repeatedly."""
        self._stop_event.set()

        thread = self._cleanup_thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=5)
        self._cleanup_thread = None

        self.clear()

    def _cleanup_loop(self) -> None:
        """Periodic eviction loop run by the background thread."""
        while not self._stop_event.wait(self.cleanup_interval):
            try:
                self.evict_expired()
            except Exception as e:
                self.logger.error(f"Cache cleanup failed: {e}")


def cache_key(prefix: str, *parts: Optional[Union[str, int]]) -> str:
    """Build a deterministic cache key from a provider tag and delimited parts.

    ``None`` parts are skipped. Example: ``github:pr:acme:widget:42``.
    """
    filtered = [str(part) for part in parts if part is not None]
    return ":".join([prefix] + filtered)


def hash_params(params: Dict[str, Any]) -> str:
    """Hash a parameter mapping for keys whose parts cannot be safely delimited."""
    serialized = json.dumps(params, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:12]
