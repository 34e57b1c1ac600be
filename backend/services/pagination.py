"""
Pagination Service - Exhaustive offset/limit paging over a remote collection

Upstream collections cap the page size (Appwrite: 100 documents per call) and
expose only offset/limit semantics plus a `total` that may be stale, missing
or inconsistent between pages. This module pulls every page into memory.

Stop conditions (whichever triggers first):
- page returned zero records
- page returned fewer records than `limit` (last page)
- accumulated >= declared total (only when a positive total is known)
- attempts >= max_attempts (safety ceiling)
- offset > max_offset (safety ceiling)

A declared total of 0 is never a halt signal while records keep arriving.

Failure policy: fail fast. Any exception from `fetch_page` propagates and the
partial accumulation is discarded.

Usage:
    from services.pagination import paginate, Page

    async def fetch_page(offset, limit):
        body = await client.get_documents(offset=offset, limit=limit)
        return Page(records=body['documents'], total=body.get('total'))

    result = await paginate(fetch_page, limit=100)
    print(len(result.records), result.total, result.stop_reason)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_PAGE_LIMIT = 100
DEFAULT_MAX_ATTEMPTS = 100
DEFAULT_MAX_OFFSET = 10000

STOP_EMPTY_PAGE = 'empty_page'
STOP_SHORT_PAGE = 'short_page'
STOP_TOTAL_REACHED = 'total_reached'
STOP_MAX_ATTEMPTS = 'max_attempts'
STOP_MAX_OFFSET = 'max_offset'


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class Page:
    """One page as returned by a fetch capability."""
    records: List[Dict[str, Any]]
    total: Optional[int] = None


@dataclass
class PageRequestState:
    """Mutable cursor for a single pagination run."""
    limit: int
    offset: int = 0
    total_known: Optional[int] = None
    attempts: int = 0

    def capture_total(self, total: Optional[int]) -> None:
        # Re-capture while nothing positive is known: upstream can report 0
        # on the first page and the real count afterwards
        if total and not self.total_known:
            self.total_known = total

    def total_reached(self, accumulated: int) -> bool:
        return bool(self.total_known) and accumulated >= self.total_known


@dataclass(frozen=True)
class PaginationResult:
    """Complete record set in server order plus run diagnostics."""
    records: List[Dict[str, Any]]
    total: Optional[int]
    pages_fetched: int
    stop_reason: str
    warnings: List[str] = field(default_factory=list)


FetchPage = Callable[[int, int], Awaitable[Page]]


# =============================================================================
# Paginator
# =============================================================================

async def paginate(
    fetch_page: FetchPage,
    limit: int = DEFAULT_PAGE_LIMIT,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    max_offset: int = DEFAULT_MAX_OFFSET,
    label: str = 'collection',
) -> PaginationResult:
    """
    Fetch every page of a remote collection sequentially.

    Args:
        fetch_page: Awaitable `(offset, limit) -> Page`
        limit: Page size requested on every call (the upstream maximum)
        max_attempts: Hard ceiling on fetch calls
        max_offset: Stop once the offset moves past this value
        label: Name used in log lines

    Returns:
        PaginationResult with all records and the last observed total.

    Raises:
        ValueError: On invalid limits.
        Exception: Whatever `fetch_page` raises, unchanged.
    """
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    if max_attempts <= 0:
        raise ValueError(f"max_attempts must be positive, got {max_attempts}")
    if max_offset < 0:
        raise ValueError(f"max_offset must be >= 0, got {max_offset}")

    state = PageRequestState(limit=limit)
    accumulated: List[Dict[str, Any]] = []
    last_total: Optional[int] = None
    warnings: List[str] = []

    while True:
        state.attempts += 1
        page = await fetch_page(state.offset, state.limit)

        if page.total is not None:
            last_total = page.total
        state.capture_total(page.total)

        returned = len(page.records)
        if returned == 0:
            stop_reason = STOP_EMPTY_PAGE
            break

        accumulated.extend(page.records)
        state.offset += returned
        logger.debug(
            f"{label}: page {state.attempts} returned {returned} records "
            f"({len(accumulated)}/{state.total_known or '?'})"
        )

        if returned < state.limit:
            stop_reason = STOP_SHORT_PAGE
            break
        if state.total_reached(len(accumulated)):
            stop_reason = STOP_TOTAL_REACHED
            break
        if state.attempts >= max_attempts:
            stop_reason = STOP_MAX_ATTEMPTS
            break
        if state.offset > max_offset:
            stop_reason = STOP_MAX_OFFSET
            break

    if stop_reason in (STOP_MAX_ATTEMPTS, STOP_MAX_OFFSET):
        message = (
            f"{label}: pagination stopped at safety limit ({stop_reason}) "
            f"after {len(accumulated)} records"
        )
        logger.warning(message)
        warnings.append(message)

    logger.info(
        f"{label}: fetched {len(accumulated)} records in {state.attempts} pages "
        f"(declared total={last_total}, stop={stop_reason})"
    )

    return PaginationResult(
        records=accumulated,
        total=last_total,
        pages_fetched=state.attempts,
        stop_reason=stop_reason,
        warnings=warnings,
    )


def page_number_adapter(fetch_numbered_page: Callable[[int, int], Awaitable[Page]]) -> FetchPage:
    """
    Adapt a 1-based page-number fetcher to the offset/limit contract.

    Offsets always advance by whole pages until the final (short) page, so
    `offset // limit + 1` is the page number.
    """
    async def fetch_page(offset: int, limit: int) -> Page:
        return await fetch_numbered_page(offset // limit + 1, limit)

    return fetch_page
