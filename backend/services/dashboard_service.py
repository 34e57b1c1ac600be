"""
Dashboard Service - Snapshot pipelines for the three dashboard views

Each view is one pipeline: fetch (concurrently where inputs are independent,
sequential pages within a collection) -> aggregate -> immutable snapshot.

Views:
- overview:  collection counts, monthly user trend (calendar), wards with
             councillor/municipality names and per-ward analytics
- interests: interested-ward counts by ward and district, enriched top wards,
             interested councillors
- users:     registration/login metrics, year-month user trend

Failure policy:
- Primary data (collection list, interest sign-ups, users) failing -> the
  run raises UpstreamError; no partial snapshot is published
- Secondary data (reference lists, single collections in the overview)
  failing -> degraded labels/zero counts plus an entry in `warnings`

Snapshots are cached per view with a TTL; expiry is the refresh cycle.
Overlapping refreshes are harmless: the last finished run wins.

Usage:
    from services.dashboard_service import get_dashboard_service

    snapshot = get_dashboard_service().get_snapshot('interests')
    payload = snapshot.to_json_dict()
"""

import asyncio
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from config import Settings
from constants import (
    COUNCILLOR_NAME_FIELDS,
    DISTRICT_FIELDS,
    JOINED_DATE_FIELDS,
    METRIC_COLLECTION_ALIASES,
    METRIC_ORDER,
    MUNICIPALITY_NAME_FIELDS,
    PANCHAYATH_NAME_FIELDS,
    RECORD_ID_FIELDS,
    WARD_COUNCILLOR_FIELDS,
    WARD_MUNICIPALITY_FIELDS,
    WARD_NAME_FIELDS,
    WARD_NUMBER_FIELDS,
    WARD_REFERENCE_FIELDS,
    WARD_TYPE_FIELDS,
)
from schemas.dashboard import (
    CollectionCount,
    DashboardStats,
    InterestsSnapshot,
    OverviewSnapshot,
    UsersSnapshot,
    WardAnalytics,
    WardSummary,
)
from services.aggregator import (
    HistogramMode,
    ReferenceJoin,
    build_reference_index,
    count_per_group,
    first_seen_details,
    join_references,
    monthly_histogram,
    summarize,
)
from services.appwrite_client import AppwriteClient
from services.directus_client import DirectusClient
from services.field_resolver import normalize_key, resolve_field
from services.upstream import UpstreamError
from services.user_metrics import compute_user_metrics

logger = logging.getLogger('dashboard')

# ============================================================================
# CONFIGURATION
# ============================================================================

VIEWS = ('overview', 'interests', 'users')

CACHE_MAX_SIZE = 16

# ============================================================================
# CACHING
# ============================================================================


class TTLCache:
    """
    Latest snapshot per dashboard view, expired after `ttl` seconds.

    Keys are view names (see VIEWS). A failed rebuild never calls set(), so the
    previous snapshot keeps serving until it expires. stats() reports each
    entry's age for the /api/dashboard/cache endpoint.
    """

    def __init__(self, maxsize: int = 16, ttl: int = 300):
        self._cache = {}
        self._maxsize = maxsize
        self._ttl = ttl
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if key in self._cache:
                value, timestamp = self._cache[key]
                if time.time() - timestamp < self._ttl:
                    return value
                else:
                    del self._cache[key]
            return None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            # Evict oldest entries if at capacity
            if key not in self._cache and len(self._cache) >= self._maxsize:
                oldest_key = min(self._cache.keys(), key=lambda k: self._cache[k][1])
                del self._cache[oldest_key]
            self._cache[key] = (value, time.time())

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            now = time.time()
            return {
                'size': len(self._cache),
                'maxsize': self._maxsize,
                'ttl': self._ttl,
                'entries': {
                    key: round(now - timestamp, 1)
                    for key, (_, timestamp) in self._cache.items()
                },
            }


# ============================================================================
# COLLECTION MATCHING
# ============================================================================

def find_metric_collection(
    collections: Sequence[CollectionCount],
    aliases: Sequence[str],
) -> Optional[CollectionCount]:
    """
    Pick the collection backing one dashboard metric.

    1. Exact name match (case-insensitive) with documents, alias by alias
    2. Otherwise the first collection whose name contains any alias
    """
    for alias in aliases:
        for collection in collections:
            if collection.name.lower() == alias.lower() and collection.document_count > 0:
                return collection

    for collection in collections:
        name = collection.name.lower()
        if any(alias.lower() in name for alias in aliases):
            return collection
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _optional_key(value: Any) -> Optional[str]:
    return normalize_key(value) if value is not None else None


# ============================================================================
# SERVICE
# ============================================================================

class DashboardService:
    """
    Builds and caches dashboard snapshots.

    Example:
        service = DashboardService(appwrite, directus, settings)
        overview = asyncio.run(service.build_overview())
        cached = service.get_snapshot('overview')
    """

    def __init__(self, appwrite: AppwriteClient, directus: DirectusClient, settings: Settings):
        self.appwrite = appwrite
        self.directus = directus
        self.settings = settings
        self._cache = TTLCache(maxsize=CACHE_MAX_SIZE, ttl=settings.dashboard_cache_ttl_seconds)
        self._builders = {
            'overview': self.build_overview,
            'interests': self.build_interests,
            'users': self.build_users,
        }

    # ------------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------------

    @staticmethod
    def _degrade(result: Any, what: str, warnings: List[str], default: Any) -> Any:
        """
        Unwrap a gather() result for secondary data.

        UpstreamError -> default + warning. Any other exception is a bug and
        is re-raised.
        """
        if isinstance(result, UpstreamError):
            message = f"{what} unavailable: {result}"
            logger.warning(message)
            warnings.append(message)
            return default
        if isinstance(result, BaseException):
            raise result
        return result

    async def fetch_wards_with_names(self, warnings: List[str]) -> List[Dict[str, Any]]:
        """
        Wards joined with councillor and municipality display names.

        All three lists are fetched concurrently. Missing reference lists
        give '<Label> #<id>' names; a missing ward list gives no wards.
        """
        s = self.settings
        wards_result, councillors_result, municipalities_result = await asyncio.gather(
            self.directus.afetch_items(s.directus_wards_collection),
            self.directus.afetch_items(s.directus_councillors_collection),
            self.directus.afetch_items(s.directus_municipalities_collection),
            return_exceptions=True,
        )

        wards = self._degrade(wards_result, 'Wards', warnings, default=[])
        councillors = self._degrade(councillors_result, 'Councillors', warnings, default=None)
        municipalities = self._degrade(municipalities_result, 'Municipalities', warnings, default=None)

        councillor_index = (
            build_reference_index(councillors, RECORD_ID_FIELDS, COUNCILLOR_NAME_FIELDS)
            if councillors is not None else None
        )
        municipality_index = (
            build_reference_index(municipalities, RECORD_ID_FIELDS, MUNICIPALITY_NAME_FIELDS)
            if municipalities is not None else None
        )

        return join_references(wards, [
            ReferenceJoin(WARD_COUNCILLOR_FIELDS, councillor_index, 'Councillor', 'councillorName'),
            ReferenceJoin(WARD_MUNICIPALITY_FIELDS, municipality_index, 'Municipality', 'municipalityName'),
        ])

    async def _count_collections(self, warnings: List[str]):
        """Every collection with its full document list (fetched concurrently)."""
        collections = await self.appwrite.alist_collections()
        results = await asyncio.gather(
            *(self.appwrite.fetch_all_documents(c.get('$id', '')) for c in collections),
            return_exceptions=True,
        )

        counts: List[CollectionCount] = []
        documents: Dict[str, List[Dict[str, Any]]] = {}
        for collection, result in zip(collections, results):
            collection_id = collection.get('$id', '')
            name = collection.get('name') or collection_id
            records = self._degrade(result, f"Collection '{name}'", warnings, default=None)

            if records is None:
                counts.append(CollectionCount(
                    id=collection_id, name=name, document_count=0, error=str(result),
                ))
                documents[collection_id] = []
                continue

            warnings.extend(records.warnings)
            counts.append(CollectionCount(
                id=collection_id, name=name, document_count=len(records.records),
            ))
            documents[collection_id] = records.records

        return counts, documents

    # ------------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------------

    async def build_overview(self) -> OverviewSnapshot:
        """Collection counts, monthly users and per-ward analytics."""
        start = time.time()
        warnings: List[str] = []

        (counts, documents), wards = await asyncio.gather(
            self._count_collections(warnings),
            self.fetch_wards_with_names(warnings),
        )

        metric_docs: Dict[str, List[Dict[str, Any]]] = {}
        metric_totals: Dict[str, int] = {}
        for metric in METRIC_ORDER:
            match = find_metric_collection(counts, METRIC_COLLECTION_ALIASES[metric])
            metric_docs[metric] = documents.get(match.id, []) if match else []
            metric_totals[metric] = match.document_count if match else 0

        stats = DashboardStats(
            total_users=metric_totals['users'],
            total_blood_donors=metric_totals['blood_donors'],
            total_volunteers=metric_totals['volunteers'],
            total_donations=metric_totals['donations'],
            total_issue_reports=metric_totals['issue_reports'],
        )

        # Metric collections follow find_metric_collection (exact name first), so
        # the histogram and per-ward rollups read the same documents as the stats
        monthly_users = monthly_histogram(
            metric_docs['users'], JOINED_DATE_FIELDS, HistogramMode.CALENDAR
        )

        raw_ids = [resolve_field(ward, RECORD_ID_FIELDS) for ward in wards]
        ward_ids = [normalize_key(raw_id) for raw_id in raw_ids]
        per_ward = {
            metric: count_per_group(raw_ids, docs, WARD_REFERENCE_FIELDS)
            for metric, docs in metric_docs.items()
        }

        summaries = []
        for ward, ward_id in zip(wards, ward_ids):
            ward_name = resolve_field(ward, WARD_NAME_FIELDS)
            summaries.append(WardSummary(
                id=ward_id,
                ward_name=str(ward_name).strip() if ward_name is not None else None,
                ward_number=_optional_key(resolve_field(ward, WARD_NUMBER_FIELDS)),
                councillor_id=_optional_key(resolve_field(ward, WARD_COUNCILLOR_FIELDS)),
                municipality_id=_optional_key(resolve_field(ward, WARD_MUNICIPALITY_FIELDS)),
                councillor_name=ward['councillorName'],
                municipality_name=ward['municipalityName'],
                analytics=WardAnalytics(
                    users=per_ward['users'][ward_id],
                    donors=per_ward['blood_donors'][ward_id],
                    volunteers=per_ward['volunteers'][ward_id],
                    donations=per_ward['donations'][ward_id],
                    issue_reports=per_ward['issue_reports'][ward_id],
                ),
            ))

        snapshot = OverviewSnapshot(
            generated_at=_now(),
            stats=stats,
            collections=counts,
            monthly_users=monthly_users,
            wards=summaries,
            warnings=warnings,
        )
        logger.info(
            f"Overview built: {len(counts)} collections, {len(summaries)} wards, "
            f"{len(warnings)} warnings, {time.time() - start:.2f}s"
        )
        return snapshot

    async def build_interests(self) -> InterestsSnapshot:
        """Interested-ward analytics enriched with ward reference data."""
        start = time.time()
        warnings: List[str] = []
        s = self.settings

        interests_result, wards_result, councillors_result = await asyncio.gather(
            self.directus.fetch_all_items(s.directus_interested_wards_collection),
            self.fetch_wards_with_names(warnings),
            self.directus.afetch_items(s.directus_interested_councillors_collection),
            return_exceptions=True,
        )
        # Primary data: fail the run
        if isinstance(interests_result, BaseException):
            raise interests_result
        if isinstance(wards_result, BaseException):
            raise wards_result
        councillors = self._degrade(
            councillors_result, 'Interested councillors', warnings, default=[]
        )

        records = interests_result.records
        warnings.extend(interests_result.warnings)

        wards_by_number: Dict[str, Dict[str, Any]] = {}
        for ward in wards_result:
            number = resolve_field(ward, WARD_NUMBER_FIELDS)
            if number is not None:
                wards_by_number.setdefault(normalize_key(number), ward)

        details = first_seen_details(records, WARD_NUMBER_FIELDS, {
            'district': DISTRICT_FIELDS,
            'panchayathName': PANCHAYATH_NAME_FIELDS,
            'type': WARD_TYPE_FIELDS,
        })

        def enrich_ward(key: str) -> Dict[str, Any]:
            ward = wards_by_number.get(key)
            detail = details.get(key, {})
            if ward is not None:
                name = resolve_field(ward, WARD_NAME_FIELDS, default='')
                ward_name = f"{str(name).strip()} (Ward #{key})"
            else:
                ward_name = f"Ward #{key}"
            return {
                'wardName': ward_name,
                'district': detail.get('district'),
                'panchayathName': detail.get('panchayathName'),
                'type': detail.get('type'),
                'councillorName': ward.get('councillorName') if ward else None,
                'municipalityName': ward.get('municipalityName') if ward else None,
            }

        snapshot = InterestsSnapshot(
            generated_at=_now(),
            by_ward=summarize(records, WARD_NUMBER_FIELDS, top_n=s.top_wards_limit, enrich=enrich_ward),
            by_district=summarize(records, DISTRICT_FIELDS, top_n=None),
            declared_total=interests_result.total,
            councillors=councillors,
            warnings=warnings,
        )
        logger.info(
            f"Interests built: {len(records)} sign-ups, "
            f"{snapshot.by_ward.group_count} wards, {time.time() - start:.2f}s"
        )
        return snapshot

    async def build_users(self) -> UsersSnapshot:
        """Registration/login metrics over the full users collection."""
        start = time.time()
        result = await self.appwrite.fetch_all_documents(
            self.settings.appwrite_users_collection_id
        )
        snapshot = UsersSnapshot(
            generated_at=_now(),
            metrics=compute_user_metrics(result.records),
            monthly=monthly_histogram(result.records, JOINED_DATE_FIELDS, HistogramMode.YEAR_MONTH),
            warnings=list(result.warnings),
        )
        logger.info(f"Users built: {len(result.records)} users, {time.time() - start:.2f}s")
        return snapshot

    # ------------------------------------------------------------------------
    # Cached access
    # ------------------------------------------------------------------------

    async def aget_snapshot(self, view: str, refresh: bool = False):
        """
        Cached snapshot for a view, rebuilding on expiry or when refresh=True.

        Raises:
            ValueError: Unknown view.
            UpstreamError: Primary data could not be fetched.
        """
        if view not in self._builders:
            raise ValueError(f"Unknown dashboard view: {view}. Available: {list(VIEWS)}")

        if not refresh:
            cached = self._cache.get(view)
            if cached is not None:
                return cached

        try:
            snapshot = await self._builders[view]()
        except UpstreamError as e:
            logger.error(f"Dashboard view '{view}' failed: {e}")
            raise

        self._cache.set(view, snapshot)
        return snapshot

    def get_snapshot(self, view: str, refresh: bool = False):
        """Blocking entry point for sync callers (Flask views, CLI)."""
        return asyncio.run(self.aget_snapshot(view, refresh=refresh))

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Dashboard cache cleared")

    def cache_stats(self) -> Dict[str, Any]:
        return self._cache.stats()


# ============================================================================
# MODULE-LEVEL ACCESS
# ============================================================================

_service: Optional[DashboardService] = None
_service_lock = threading.Lock()


def get_dashboard_service() -> DashboardService:
    """
    Shared DashboardService (lazy initialization).

    Returns:
        Service wired to the shared Appwrite/Directus clients.
    """
    global _service
    with _service_lock:
        if _service is None:
            from config import get_settings
            from services.appwrite_client import get_appwrite_client
            from services.directus_client import get_directus_client

            _service = DashboardService(
                get_appwrite_client(), get_directus_client(), get_settings()
            )
        return _service


def set_dashboard_service(service: Optional[DashboardService]) -> None:
    """Replace the shared service (tests, app factories)."""
    global _service
    with _service_lock:
        _service = service
