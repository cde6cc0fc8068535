"""Interface for caching mechanisms.

Defines the contract for storing, retrieving, and managing cached backend
responses, supporting two levels (L1 memory, L2 disk) with TTLs.
"""

import abc
from typing import Any, Optional

from chatbridge.domain.models.common import CacheKey

CACHE_LEVELS = ("l1", "l2", "all")


class CacheService(abc.ABC):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    async def get(self, key: CacheKey, level: str = 'all') -> Optional[Any]:
        """Retrieves an item from the cache asynchronously.

        Searches specified levels (or all) in order (L1, L2).

        Args:
            key: The cache key to retrieve.
            level: The cache level(s) to check ('l1', 'l2', 'all').

        Returns:
            The cached item if found and not expired, otherwise None.
        """
        pass

    @abc.abstractmethod
    async def set(
        self,
        key: CacheKey,
        value: Any,
        ttl: Optional[int] = None,
        level: str = 'all'
    ) -> None:
        """Stores an item in the specified cache level(s) asynchronously.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
            ttl: Time-to-live in seconds (uses level default if None).
            level: The cache level(s) to store in ('l1', 'l2', 'all').
        """
        pass

    @abc.abstractmethod
    async def delete(self, key: CacheKey, level: str = 'all') -> None:
        """Deletes an item from the specified cache level(s) asynchronously."""
        pass

    @abc.abstractmethod
    async def clear(self, level: str = 'all') -> None:
        """Clears all items from the specified cache level(s) asynchronously."""
        pass
