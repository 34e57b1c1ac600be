"""
Dashboard Response Models - Immutable snapshots handed to the presentation layer

Every refresh builds new instances; nothing mutates a published snapshot.

Conventions:
- frozen=True: immutable after construction
- Field names snake_case in Python, camelCase on the wire (alias_generator)
- populate_by_name=True: construct with either spelling
- Serialize with `snapshot.to_json_dict()`
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class SnapshotModel(BaseModel):
    """Base for all response models."""
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_json_dict(self) -> Dict[str, Any]:
        """camelCase, JSON-safe dict (datetimes as ISO strings)."""
        return self.model_dump(by_alias=True, mode='json')


# =============================================================================
# Generic aggregates
# =============================================================================

class RankedEntry(SnapshotModel):
    """
    One row of a top-N ranking.

    Enrichment fields (wardName, district, ...) are passed as extra keyword
    arguments and serialized as-is next to key/count.
    """
    model_config = ConfigDict(extra='allow')

    key: str
    count: int


class AggregateResult(SnapshotModel):
    """Category counts over one complete record set."""
    total_count: int
    count_by_key: Dict[str, int]
    ranked_top: List[RankedEntry] = Field(default_factory=list)
    group_count: int

    @model_validator(mode='after')
    def _every_record_in_one_bucket(self):
        bucket_sum = sum(self.count_by_key.values())
        if bucket_sum != self.total_count:
            raise ValueError(
                f"Bucket counts sum to {bucket_sum}, expected {self.total_count}"
            )
        if self.group_count != len(self.count_by_key):
            raise ValueError(
                f"group_count {self.group_count} != {len(self.count_by_key)} buckets"
            )
        return self


class MonthBucket(SnapshotModel):
    """
    One histogram bucket.

    key is "MM" in calendar mode and "YYYY-MM" in year-month mode.
    """
    key: str
    month: str
    month_number: int
    year: Optional[int] = None
    count: int


class MonthlyHistogram(SnapshotModel):
    mode: str
    buckets: List[MonthBucket]
    dated_count: int
    undated_count: int

    def as_key_counts(self) -> List[Dict[str, int]]:
        """[{"2024-01": 2}, {"2024-02": 1}] - compact form for charts."""
        return [{bucket.key: bucket.count} for bucket in self.buckets]


# =============================================================================
# Overview dashboard
# =============================================================================

class CollectionCount(SnapshotModel):
    id: str
    name: str
    document_count: int
    error: Optional[str] = None


class DashboardStats(SnapshotModel):
    total_users: int = 0
    total_blood_donors: int = 0
    total_volunteers: int = 0
    total_donations: int = 0
    total_issue_reports: int = 0


class WardAnalytics(SnapshotModel):
    users: int = 0
    donors: int = 0
    volunteers: int = 0
    donations: int = 0
    issue_reports: int = 0


class WardSummary(SnapshotModel):
    id: str
    ward_name: Optional[str] = None
    ward_number: Optional[str] = None
    councillor_id: Optional[str] = None
    municipality_id: Optional[str] = None
    councillor_name: str
    municipality_name: str
    analytics: WardAnalytics = Field(default_factory=WardAnalytics)


class OverviewSnapshot(SnapshotModel):
    generated_at: datetime
    stats: DashboardStats
    collections: List[CollectionCount]
    monthly_users: MonthlyHistogram
    wards: List[WardSummary]
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# Interests dashboard
# =============================================================================

class InterestsSnapshot(SnapshotModel):
    generated_at: datetime
    by_ward: AggregateResult
    by_district: AggregateResult
    declared_total: Optional[int] = None
    councillors: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# Users dashboard
# =============================================================================

class UserMetrics(SnapshotModel):
    total_users: int
    current_month: int
    current_week: int
    current_day: int
    last_month: int
    last_week: int
    active_users: int
    inactive_users: int
    logged_in_today: int
    logged_in_this_week: int
    logged_in_this_month: int
    never_logged_in: int
    login_rate: float
    average_login_frequency: float
    undated_users: int


class UsersSnapshot(SnapshotModel):
    generated_at: datetime
    metrics: UserMetrics
    monthly: MonthlyHistogram
    warnings: List[str] = Field(default_factory=list)
