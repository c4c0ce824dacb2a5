"""Interface for caching mechanisms.

Defines the contract for storing and retrieving looked-up providers with a
fixed time-to-live, plus the lifecycle of the background expiry sweep.
"""

import abc
from typing import Any, Optional

# Import relevant domain models
from ..models.common import CacheKey


class CacheService(abc.ABC):
    """Abstract Base Class for TTL caching operations."""

    @property
    @abc.abstractmethod
    def enabled(self) -> bool:
        """Whether the cache currently stores and serves entries."""
        pass

    @abc.abstractmethod
    def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieves an item from the cache.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached item if present and not expired, otherwise None.
            Expired entries are treated as misses and are never extended.
        """
        pass

    @abc.abstractmethod
    def put(self, key: CacheKey, value: Any, ttl: float) -> None:
        """Stores an item, replacing any previous entry for the key.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
            ttl: Time-to-live in seconds, counted from now. Reads do not refresh it.
        """
        pass

    @abc.abstractmethod
    def sweep(self) -> int:
        """Deletes every expired entry.

        Returns:
            The number of entries removed.
        """
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        """Removes all entries."""
        pass

    @abc.abstractmethod
    def start(self, interval: float) -> None:
        """Starts the periodic background sweep.

        Args:
            interval: Seconds between sweeps, independent of any entry TTL.
        """
        pass

    @abc.abstractmethod
    def stop(self) -> None:
        """Stops the background sweep and waits for it to exit."""
        pass
