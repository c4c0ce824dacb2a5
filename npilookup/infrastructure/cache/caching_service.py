"""Concrete implementation of the in-memory TTL Caching Service.

Entries expire a fixed time after they are written. Reads never extend an
entry and expired entries are misses; a background sweeper owned by the
store physically removes them every ``interval`` seconds.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

# Domain Layer Imports
from npilookup.domain.interfaces.cache import CacheService
from npilookup.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

SWEEPER_THREAD_NAME = "npilookup-cache-sweeper"


@dataclass(frozen=True)
class CacheEntry:
    """Internal representation of a cache entry with absolute expiry."""
    value: Any
    expires_at: float  # clock() reading after which the entry is stale


class TTLCacheStore(CacheService):
    """Process-lifetime key/value store with per-entry expiry."""

    def __init__(self, enabled: bool = False, clock: Callable[[], float] = time.monotonic):
        """Initializes the cache.

        Args:
            enabled: Whether the cache starts enabled. Disabled by default.
            clock: Monotonic time source in seconds; injectable for tests.
        """
        self._enabled = enabled
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()
        self._sweeper: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        logger.info(f"TTLCacheStore initialized (enabled={enabled})")

    # --- Enable / disable ---

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    # --- CacheService Interface Implementation ---

    def get(self, key: CacheKey) -> Optional[Any]:
        """Returns the cached value if present and fresh, otherwise None."""
        # Checked before the lock so a disabled cache costs nothing.
        if not self._enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or self._clock() > entry.expires_at:
            logger.debug(f"Cache miss for key: {key}")
            return None
        logger.debug(f"Cache hit for key: {key}")
        return entry.value

    def put(self, key: CacheKey, value: Any, ttl: float) -> None:
        """Creates or replaces the entry for ``key``, expiring ``ttl`` seconds from now."""
        if not self._enabled:
            return
        entry = CacheEntry(value=value, expires_at=self._clock() + ttl)
        with self._lock:
            self._entries[key] = entry
        logger.debug(f"Stored item in cache: key={key}, ttl={ttl}s")

    def delete(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self) -> int:
        """Removes every expired entry and returns how many were dropped."""
        with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if now > entry.expires_at]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Cleared in-memory cache.")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        # Physical presence, expired or not.
        with self._lock:
            return key in self._entries

    # --- Background sweeper lifecycle ---

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start(self, interval: float) -> None:
        """Starts the background sweeper thread. No-op if already running."""
        if interval <= 0:
            raise ValueError(f"Sweep interval must be > 0, got {interval}")
        if self.sweeping:
            logger.debug("Cache sweeper already running.")
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            args=(interval,),
            name=SWEEPER_THREAD_NAME,
            daemon=True,
        )
        self._sweeper.start()
        logger.info(f"Cache sweeper started (interval={interval}s)")

    def stop(self) -> None:
        """Signals the sweeper to exit and waits for it."""
        sweeper = self._sweeper
        if sweeper is None:
            return
        self._stop_event.set()
        sweeper.join()
        self._sweeper = None
        logger.info("Cache sweeper stopped.")

    def _sweep_loop(self, interval: float) -> None:
        # Event.wait returns True once stop() is called.
        while not self._stop_event.wait(interval):
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}", exc_info=True)
