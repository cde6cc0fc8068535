"""Concrete implementation of the two-level Caching Service.

Manages L1 (in-memory) and L2 (diskcache) caches of backend responses with
fixed TTLs. L2 survives between CLI invocations; L1 only lives as long as
the process.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import diskcache as dc

from chatbridge.domain.interfaces.cache import CACHE_LEVELS, CacheService
from chatbridge.domain.models.common import CacheKey, CachePrefix

logger = logging.getLogger(__name__)

DEFAULT_L1_MAX_ITEMS = 100
DEFAULT_TTL_SECONDS = 5 * 60  # 5 minutes


@dataclass
class CacheEntry:
    """Internal representation of an L1 cache entry with expiry."""
    value: Any
    expiry_time: float


def make_cache_key(prefix: CachePrefix, *args: Any, **kwargs: Any) -> CacheKey:
    """Generates a consistent cache key from a prefix and call arguments."""
    key_parts = [prefix]
    key_parts.extend(map(str, args))
    key_parts.extend(f"{k}={v}" for k, v in sorted(kwargs.items()))
    key_string = "|".join(key_parts)
    return CacheKey(f"{prefix}:{hashlib.sha256(key_string.encode('utf-8')).hexdigest()}")


class CachingServiceImpl(CacheService):
    """Two-level cache implementation (L1 Memory, L2 Disk)."""

    def __init__(
        self,
        ttl: int = DEFAULT_TTL_SECONDS,
        l1_max_items: int = DEFAULT_L1_MAX_ITEMS,
        l2_dir: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the caching service.

        Args:
            ttl: Default time-to-live in seconds for both levels.
            l1_max_items: Maximum number of in-memory entries.
            l2_dir: Directory for the disk cache; None disables L2.
            clock: Wall clock used for L1 expiry.
        """
        self.ttl = ttl
        self.l1_cache: Dict[CacheKey, CacheEntry] = {}
        self.l1_max_items = l1_max_items
        self._clock = clock
        self.l2_cache: Optional[dc.Cache] = None
        if l2_dir is not None:
            self.l2_cache = dc.Cache(str(l2_dir), timeout=1)
        logger.info(
            f"CachingService initialized. L1(ttl={ttl}s, max={l1_max_items}), "
            f"L2({self.l2_cache.directory if self.l2_cache is not None else 'disabled'})"
        )

    @staticmethod
    def _check_level(level: str) -> None:
        if level not in CACHE_LEVELS:
            raise ValueError(f"Invalid cache level '{level}'. Choose one of {', '.join(CACHE_LEVELS)}.")

    def _prune_l1(self) -> None:
        """Removes expired items from L1 cache and evicts oldest if over limit."""
        now = self._clock()
        expired_keys = [k for k, v in self.l1_cache.items() if now >= v.expiry_time]
        for k in expired_keys:
            del self.l1_cache[k]

        # Insertion order doubles as age order
        while len(self.l1_cache) > self.l1_max_items:
            oldest_key = next(iter(self.l1_cache))
            del self.l1_cache[oldest_key]

    # --- CacheService Interface Implementation ---

    async def get(self, key: CacheKey, level: str = 'all') -> Optional[Any]:
        """Retrieves an item from the specified cache level(s)."""
        self._check_level(level)

        if level in ('l1', 'all'):
            self._prune_l1()
            entry = self.l1_cache.get(key)
            if entry is not None:
                logger.debug(f"L1 cache hit for key: {key}")
                return entry.value

        if level in ('l2', 'all') and self.l2_cache is not None:
            value = self.l2_cache.get(key)
            if value is not None:
                logger.debug(f"L2 cache hit for key: {key}")
                if level == 'all':
                    await self.set(key, value, level='l1')
                return value

        logger.debug(f"Cache miss for key: {key} across checked levels: {level}")
        return None

    async def set(
        self, key: CacheKey, value: Any, ttl: Optional[int] = None, level: str = 'all'
    ) -> None:
        """Stores an item in the specified cache level(s)."""
        self._check_level(level)
        effective_ttl = ttl if ttl is not None else self.ttl

        if level in ('l1', 'all'):
            self.l1_cache[key] = CacheEntry(value=value, expiry_time=self._clock() + effective_ttl)
            self._prune_l1()
            logger.debug(f"Stored item in L1 cache: key={key}")

        if level in ('l2', 'all') and self.l2_cache is not None:
            self.l2_cache.set(key, value, expire=effective_ttl)
            logger.debug(f"Stored item in L2 cache: key={key}")

    async def delete(self, key: CacheKey, level: str = 'all') -> None:
        """Deletes an item from the specified cache level(s)."""
        self._check_level(level)
        if level in ('l1', 'all'):
            self.l1_cache.pop(key, None)
        if level in ('l2', 'all') and self.l2_cache is not None:
            self.l2_cache.delete(key)
        logger.debug(f"Deleted cache key {key} from level(s): {level}")

    async def clear(self, level: str = 'all') -> None:
        """Clears all items from the specified cache level(s)."""
        self._check_level(level)
        if level in ('l1', 'all'):
            self.l1_cache.clear()
            logger.info("Cleared L1 (in-memory) cache.")
        if level in ('l2', 'all') and self.l2_cache is not None:
            self.l2_cache.clear()
            logger.info(f"Cleared L2 (disk) cache at: {self.l2_cache.directory}")

    def close(self) -> None:
        if self.l2_cache is not None:
            self.l2_cache.close()
