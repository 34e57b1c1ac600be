# API response and parameter models
from .dashboard import (
    AggregateResult,
    CollectionCount,
    DashboardStats,
    InterestsSnapshot,
    MonthBucket,
    MonthlyHistogram,
    OverviewSnapshot,
    RankedEntry,
    UserMetrics,
    UsersSnapshot,
    WardAnalytics,
    WardSummary,
)
from .params import DashboardParams, DocumentsParams

__all__ = [
    'AggregateResult',
    'CollectionCount',
    'DashboardStats',
    'InterestsSnapshot',
    'MonthBucket',
    'MonthlyHistogram',
    'OverviewSnapshot',
    'RankedEntry',
    'UserMetrics',
    'UsersSnapshot',
    'WardAnalytics',
    'WardSummary',
    'DashboardParams',
    'DocumentsParams',
]
