"""
Upstream HTTP base - shared transport for the Appwrite and Directus clients

Provides:
- UpstreamError hierarchy (transport vs payload failures)
- UpstreamClient: requests.Session wrapper with retry-by-loop-counter and
  exponential backoff for connection errors / timeouts
- async wrappers that run blocking calls in a worker thread so every remote
  call is an `await` point for the dashboard pipelines

Non-2xx responses are never retried: they raise UpstreamTransportError at once
carrying the endpoint and status code.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
BACKOFF_MULTIPLIER = 2.0

USER_AGENT = "WardAnalytics/1.0 (dashboard backend)"

# Upstream error bodies can be large HTML pages
MAX_ERROR_BODY_CHARS = 500


# =============================================================================
# Exceptions
# =============================================================================

class UpstreamError(Exception):
    """Base exception for upstream API errors."""

    def __init__(self, message: str, endpoint: Optional[str] = None,
                 status_code: Optional[int] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": str(self),
            "endpoint": self.endpoint,
            "status": self.status_code,
        }


class UpstreamTransportError(UpstreamError):
    """Network failure or non-2xx response."""
    pass


class UpstreamPayloadError(UpstreamError):
    """Response arrived but is not the JSON shape we expect."""
    pass


# =============================================================================
# Client
# =============================================================================

class UpstreamClient:
    """
    Base class for JSON-over-HTTP upstreams.

    Subclasses set `service_name` and add headers in __init__; all requests
    go through `get_json` (blocking) or `aget_json` (awaitable).
    """

    service_name = "upstream"

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        if not base_url:
            raise UpstreamError(f"{self.service_name}: base URL is not configured")
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")

        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self._session = requests.Session()
        self._session.headers.update({
            "User-Agent": USER_AGENT,
            "Content-Type": "application/json",
        })

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def get_json(self, path: str, params: Any = None) -> Any:
        """
        GET a JSON document.

        Args:
            path: Path relative to base_url
            params: Query params (dict or list of tuples for repeated keys)

        Returns:
            Decoded JSON body.

        Raises:
            UpstreamTransportError: Connection failure after retries, or non-2xx.
            UpstreamPayloadError: Body is not JSON.
        """
        endpoint = self.url(path)

        for attempt in range(self.max_retries):
            try:
                response = self._session.get(endpoint, params=params, timeout=self.timeout)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                backoff = INITIAL_BACKOFF_SECONDS * (BACKOFF_MULTIPLIER ** attempt)
                logger.warning(
                    f"{self.service_name} GET {endpoint} attempt "
                    f"{attempt + 1}/{self.max_retries} failed: {e}"
                )
                if attempt < self.max_retries - 1:
                    time.sleep(backoff)
                    continue
                raise UpstreamTransportError(
                    f"{self.service_name} unreachable after {self.max_retries} attempts: {e}",
                    endpoint=endpoint,
                ) from e
            except requests.exceptions.RequestException as e:
                raise UpstreamTransportError(
                    f"{self.service_name} request failed: {e}",
                    endpoint=endpoint,
                ) from e

            if not 200 <= response.status_code < 300:
                body = (response.text or '')[:MAX_ERROR_BODY_CHARS]
                logger.error(
                    f"{self.service_name} API error: {response.status_code} "
                    f"for {endpoint}: {body}"
                )
                raise UpstreamTransportError(
                    f"{self.service_name} API error: {response.status_code} - {body}",
                    endpoint=endpoint,
                    status_code=response.status_code,
                )

            try:
                return response.json()
            except ValueError as e:
                raise UpstreamPayloadError(
                    f"{self.service_name} returned a non-JSON body",
                    endpoint=endpoint,
                    status_code=response.status_code,
                ) from e

        # Loop always returns or raises; kept for type checkers
        raise UpstreamTransportError(f"{self.service_name}: no attempts made", endpoint=endpoint)

    async def aget_json(self, path: str, params: Any = None) -> Any:
        """Awaitable get_json; the blocking request runs in a worker thread."""
        return await asyncio.to_thread(self.get_json, path, params)

    @staticmethod
    def expect_list(body: Any, key: str, endpoint: str) -> list:
        """Pull a list out of an envelope, treating null as empty."""
        if not isinstance(body, dict):
            raise UpstreamPayloadError(
                f"Expected a JSON object with '{key}'", endpoint=endpoint
            )
        items = body.get(key)
        if items is None:
            return []
        if not isinstance(items, list):
            raise UpstreamPayloadError(
                f"Expected '{key}' to be a list, got {type(items).__name__}",
                endpoint=endpoint,
            )
        return items

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
