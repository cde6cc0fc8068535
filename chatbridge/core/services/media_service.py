"""Core service for podcast, file gallery, storage and remote cache endpoints.

Listing endpoints are read through the client's response cache; anything
that reports live state (health, storage connectivity, cache stats, signed
download URLs) always goes to the network.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from chatbridge.domain.models.common import Endpoint, JsonObject
from chatbridge.infrastructure.http.api_client import HEALTH_ENDPOINT, ResilientApiClient

logger = logging.getLogger(__name__)

EPISODES_ENDPOINT = Endpoint("/api/podcast/episodes")
FEED_INFO_ENDPOINT = Endpoint("/api/podcast/feed-info")
FEED_ENDPOINT = Endpoint("/api/podcast/feed")
FILES_ENDPOINT = Endpoint("/api/files")
CONTAINER_INFO_ENDPOINT = Endpoint("/api/storage/container-info")
STORAGE_TEST_ENDPOINT = Endpoint("/api/storage/test-connection")
CACHE_STATS_ENDPOINT = Endpoint("/api/cache/stats")
CACHE_CLEAR_ENDPOINT = Endpoint("/api/cache/clear")

DEFAULT_PAGE_SIZE = 12
DEFAULT_DOWNLOAD_EXPIRY_MINUTES = 60


def _query(options: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in options.items() if v is not None and v != ""}


def _file_endpoint(filename: str, suffix: str = "") -> Endpoint:
    if not filename or not filename.strip():
        raise ValueError("Filename is required")
    return Endpoint(f"{FILES_ENDPOINT}/{quote(filename, safe='')}{suffix}")


class MediaService:
    """Podcast episodes, stored files and backend cache management."""

    def __init__(self, api_client: ResilientApiClient, cache_ttl: Optional[int] = None):
        self.api_client = api_client
        self.cache_ttl = cache_ttl

    async def _cached(self, endpoint: str, options: Optional[Dict[str, Any]] = None) -> Any:
        return await self.api_client.fetch_cached(endpoint, params=_query(options or {}), ttl=self.cache_ttl)

    # --- Podcast ---

    async def get_episodes(self, **options: Any) -> JsonObject:
        return await self._cached(EPISODES_ENDPOINT, options) or {}

    async def get_feed_info(self) -> JsonObject:
        return await self._cached(FEED_INFO_ENDPOINT) or {}

    async def get_feed(self) -> Any:
        return await self._cached(FEED_ENDPOINT)

    async def search_episodes(self, query: str, **options: Any) -> JsonObject:
        return await self.get_episodes(**{**options, "search": query})

    # --- Files ---

    async def get_files(self, **options: Any) -> JsonObject:
        """Lists stored files.

        Args:
            **options: Query parameters understood by the backend: search,
                type, sort, page and limit.
        """
        return await self._cached(FILES_ENDPOINT, options) or {}

    async def get_file_info(self, filename: str) -> JsonObject:
        return await self._cached(_file_endpoint(filename)) or {}

    async def get_file_download_url(self, filename: str, expiry_minutes: int = DEFAULT_DOWNLOAD_EXPIRY_MINUTES) -> JsonObject:
        endpoint = _file_endpoint(filename, "/download")
        return await self.api_client.get(endpoint, params={"expiry": expiry_minutes}) or {}

    async def search_files(self, query: str, **options: Any) -> JsonObject:
        return await self.get_files(**{**options, "search": query})

    async def filter_files_by_type(self, file_type: str, **options: Any) -> JsonObject:
        return await self.get_files(**{**options, "type": file_type})

    async def sort_files(self, sort_by: str, **options: Any) -> JsonObject:
        return await self.get_files(**{**options, "sort": sort_by})

    async def get_files_page(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE, **options: Any) -> JsonObject:
        return await self.get_files(**{**options, "page": page, "limit": limit})

    # --- Storage and cache ---

    async def get_container_info(self) -> JsonObject:
        return await self._cached(CONTAINER_INFO_ENDPOINT) or {}

    async def test_storage_connection(self) -> JsonObject:
        return await self.api_client.get(STORAGE_TEST_ENDPOINT) or {}

    async def get_cache_stats(self) -> JsonObject:
        return await self.api_client.get(CACHE_STATS_ENDPOINT) or {}

    async def check_health(self) -> JsonObject:
        return await self.api_client.get(HEALTH_ENDPOINT) or {}

    async def clear_remote_cache(
        self,
        service: Optional[str] = None,
        filename: Optional[str] = None,
        level: str = 'all',
    ) -> JsonObject:
        """Asks the backend to drop its caches, then clears `level` of the local response cache."""
        body = _query({"service": service, "filename": filename})
        data = await self.api_client.post(CACHE_CLEAR_ENDPOINT, body)
        await self.api_client.clear_cache(level)
        logger.info(f"Cleared remote cache (service={service or 'all'}) and local cache level '{level}'")
        return data or {}
