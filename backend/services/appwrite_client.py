"""
Appwrite REST Client - Document database access

Appwrite REST API: https://appwrite.io/docs/references/cloud/server-rest/databases

Authentication:
- X-Appwrite-Project: project id
- X-Appwrite-Key: server API key (never sent to browsers)

Endpoints:
- Databases:   GET /databases
- Collections: GET /databases/{db}/collections
- Documents:   GET /databases/{db}/collections/{collection}/documents

Pagination:
- Queries are JSON strings passed as repeated `queries[]` params:
      queries[]={"method":"limit","values":[100]}
      queries[]={"method":"offset","values":[200]}
- Max 100 documents per call; response is {"total": N, "documents": [...]}

Usage:
    from services.appwrite_client import get_appwrite_client

    client = get_appwrite_client()
    collections = client.list_collections()
    result = asyncio.run(client.fetch_all_documents(collections[0]['$id']))
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from services.pagination import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_OFFSET,
    DEFAULT_PAGE_LIMIT,
    Page,
    PaginationResult,
    paginate,
)
from services.upstream import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_SECONDS,
    UpstreamClient,
)

logger = logging.getLogger(__name__)

_DATABASE_PREFIX = re.compile(r'^database-')
_COLLECTION_PREFIX = re.compile(r'^collection-')


def clean_database_id(database_id: str) -> str:
    """Strip the console's 'database-' prefix if present."""
    return _DATABASE_PREFIX.sub('', database_id or '')


def clean_collection_id(collection_id: str) -> str:
    """Strip the console's 'collection-' prefix if present."""
    return _COLLECTION_PREFIX.sub('', collection_id or '')


def build_page_queries(offset: int, limit: int) -> List[tuple]:
    """
    Build the repeated `queries[]` params for one page.

    The offset query is omitted for the first page.
    """
    params = [('queries[]', json.dumps({"method": "limit", "values": [limit]}, separators=(',', ':')))]
    if offset > 0:
        params.append(
            ('queries[]', json.dumps({"method": "offset", "values": [offset]}, separators=(',', ':')))
        )
    return params


class AppwriteClient(UpstreamClient):
    """
    Appwrite database client bound to one project and database.

    Example:
        client = AppwriteClient(endpoint, project_id, database_id, api_key)
        result = await client.fetch_all_documents('68a6fb880033d2da5bd8')
        print(f"{len(result.records)} of {result.total}")
    """

    service_name = "Appwrite"

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        database_id: str,
        api_key: str = '',
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_offset: int = DEFAULT_MAX_OFFSET,
    ):
        super().__init__(endpoint, timeout=timeout, max_retries=max_retries)
        self.project_id = project_id
        self.database_id = clean_database_id(database_id)
        self.page_limit = page_limit
        self.max_attempts = max_attempts
        self.max_offset = max_offset

        self._session.headers.update({
            "X-Appwrite-Project": project_id or '',
            "X-Appwrite-Key": api_key or '',
        })
        if not api_key:
            logger.warning("APPWRITE_API_KEY is empty - requests will be unauthenticated")

        logger.info(f"Appwrite client initialized (database={self.database_id})")

    @classmethod
    def from_settings(cls, settings) -> 'AppwriteClient':
        return cls(
            endpoint=settings.appwrite_endpoint,
            project_id=settings.appwrite_project_id,
            database_id=settings.appwrite_database_id,
            api_key=settings.appwrite_api_key,
            timeout=settings.http_timeout_seconds,
            max_retries=settings.http_max_retries,
            page_limit=settings.page_limit,
            max_attempts=settings.pagination_max_attempts,
            max_offset=settings.pagination_max_offset,
        )

    def _documents_path(self, collection_id: str) -> str:
        return (
            f"databases/{self.database_id}/collections/"
            f"{clean_collection_id(collection_id)}/documents"
        )

    # =========================================================================
    # Metadata
    # =========================================================================

    def list_databases(self) -> Dict[str, Any]:
        """Raw /databases response (used to discover the right database id)."""
        return self.get_json("databases")

    def list_collections(self) -> List[Dict[str, Any]]:
        """All collections of the configured database."""
        path = f"databases/{self.database_id}/collections"
        body = self.get_json(path)
        return self.expect_list(body, 'collections', self.url(path))

    async def alist_collections(self) -> List[Dict[str, Any]]:
        path = f"databases/{self.database_id}/collections"
        body = await self.aget_json(path)
        return self.expect_list(body, 'collections', self.url(path))

    # =========================================================================
    # Documents
    # =========================================================================

    def get_documents(self, collection_id: str) -> Dict[str, Any]:
        """Single unpaginated call - Appwrite's default page (25 documents)."""
        return self.get_json(self._documents_path(collection_id))

    async def fetch_documents_page(self, collection_id: str, offset: int, limit: int) -> Page:
        """Fetch one page of documents."""
        path = self._documents_path(collection_id)
        body = await self.aget_json(path, params=build_page_queries(offset, limit))
        documents = self.expect_list(body, 'documents', self.url(path))
        total = body.get('total')
        return Page(records=documents, total=total if isinstance(total, int) else None)

    async def fetch_all_documents(
        self,
        collection_id: str,
        limit: Optional[int] = None,
    ) -> PaginationResult:
        """
        Fetch every document in a collection.

        Raises:
            UpstreamError: On the first failed page (no partial result).
        """
        async def fetch_page(offset: int, page_limit: int) -> Page:
            return await self.fetch_documents_page(collection_id, offset, page_limit)

        return await paginate(
            fetch_page,
            limit=limit or self.page_limit,
            max_attempts=self.max_attempts,
            max_offset=self.max_offset,
            label=f"appwrite:{clean_collection_id(collection_id)}",
        )


# =============================================================================
# Module-level convenience
# =============================================================================

_client: Optional[AppwriteClient] = None


def get_appwrite_client() -> AppwriteClient:
    """
    Get global Appwrite client instance (lazy initialization).

    Returns:
        Shared AppwriteClient configured from the environment.
    """
    global _client
    if _client is None:
        from config import get_settings
        _client = AppwriteClient.from_settings(get_settings())
    return _client


def reset_appwrite_client() -> None:
    """Drop the shared client (tests, config reloads)."""
    global _client
    if _client is not None:
        _client.close()
    _client = None
