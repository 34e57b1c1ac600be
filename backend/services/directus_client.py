"""
Directus Client - Headless content API access

Directus REST API: https://docs.directus.io/reference/items.html

Endpoints:
- Items: GET /items/{collection}
  - page-number pagination: ?page=1&limit=100
  - meta=total_count adds {"meta": {"total_count": N}} to the response
- Response envelope: {"data": [...], "meta": {...}}

Reads are public (no credentials). Reference lists (wards, councillors,
municipalities) are fetched in one call; interest sign-ups are paged.

Usage:
    from services.directus_client import get_directus_client

    client = get_directus_client()
    wards = client.fetch_items('wards')
    result = asyncio.run(client.fetch_all_items('interested_wards'))
"""

import logging
from typing import Any, Dict, List, Optional

from services.pagination import (
    DEFAULT_MAX_OFFSET,
    DEFAULT_PAGE_LIMIT,
    Page,
    PaginationResult,
    page_number_adapter,
    paginate,
)
from services.upstream import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_SECONDS,
    UpstreamClient,
)

logger = logging.getLogger(__name__)

# Directus pages are numbered; stop after this many
DEFAULT_MAX_PAGES = 50


class DirectusClient(UpstreamClient):
    """
    Directus items client.

    Example:
        client = DirectusClient("https://cms.example.org")
        wards = await client.afetch_items('wards')
        interests = await client.fetch_all_items('interested_wards')
    """

    service_name = "Directus"

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        max_pages: int = DEFAULT_MAX_PAGES,
        max_offset: int = DEFAULT_MAX_OFFSET,
    ):
        super().__init__(base_url, timeout=timeout, max_retries=max_retries)
        self.page_limit = page_limit
        self.max_pages = max_pages
        self.max_offset = max_offset
        logger.info(f"Directus client initialized ({self.base_url})")

    @classmethod
    def from_settings(cls, settings) -> 'DirectusClient':
        return cls(
            base_url=settings.directus_url,
            timeout=settings.http_timeout_seconds,
            max_retries=settings.http_max_retries,
            page_limit=settings.page_limit,
            max_pages=settings.directus_max_pages,
            max_offset=settings.pagination_max_offset,
        )

    @staticmethod
    def _items_path(collection: str) -> str:
        return f"items/{collection}"

    # =========================================================================
    # Single-call reads (reference lists)
    # =========================================================================

    def get_items(self, collection: str) -> Dict[str, Any]:
        """Raw response envelope for one collection."""
        return self.get_json(self._items_path(collection))

    def fetch_items(self, collection: str) -> List[Dict[str, Any]]:
        """Items of a collection from a single call."""
        body = self.get_items(collection)
        return self.expect_list(body, 'data', self.url(self._items_path(collection)))

    async def afetch_items(self, collection: str) -> List[Dict[str, Any]]:
        path = self._items_path(collection)
        body = await self.aget_json(path)
        return self.expect_list(body, 'data', self.url(path))

    # =========================================================================
    # Paged reads
    # =========================================================================

    async def fetch_items_page(self, collection: str, page: int, limit: int) -> Page:
        """Fetch one numbered page (1-based) with the total count."""
        path = self._items_path(collection)
        body = await self.aget_json(
            path,
            params={"page": page, "limit": limit, "meta": "total_count"},
        )
        items = self.expect_list(body, 'data', self.url(path))
        meta = body.get('meta') or {}
        total = meta.get('total_count') if isinstance(meta, dict) else None
        return Page(records=items, total=total if isinstance(total, int) else None)

    async def fetch_all_items(
        self,
        collection: str,
        limit: Optional[int] = None,
    ) -> PaginationResult:
        """
        Fetch every item of a collection, page by page.

        Raises:
            UpstreamError: On the first failed page (no partial result).
        """
        async def fetch_numbered(page: int, page_limit: int) -> Page:
            return await self.fetch_items_page(collection, page, page_limit)

        return await paginate(
            page_number_adapter(fetch_numbered),
            limit=limit or self.page_limit,
            max_attempts=self.max_pages,
            max_offset=self.max_offset,
            label=f"directus:{collection}",
        )


# =============================================================================
# Module-level convenience
# =============================================================================

_client: Optional[DirectusClient] = None


def get_directus_client() -> DirectusClient:
    """
    Get global Directus client instance (lazy initialization).

    Returns:
        Shared DirectusClient configured from the environment.
    """
    global _client
    if _client is None:
        from config import get_settings
        _client = DirectusClient.from_settings(get_settings())
    return _client


def reset_directus_client() -> None:
    """Drop the shared client (tests, config reloads)."""
    global _client
    if _client is not None:
        _client.close()
    _client = None
