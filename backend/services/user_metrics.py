"""
User Metrics - Registration and login activity for the users dashboard

Windows are computed against a naive UTC `now` (see field_resolver.parse_datetime):
- today / this week (weeks start on Sunday) / this month
- last week: [start of last week, start of this week)
- last month: [first of last month, first of this month)

Registration windows use the join date (JOINED_DATE_FIELDS); users without a
parseable join date are reported as `undated_users` and skipped for those
windows only. Login metrics cover every user.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Sequence

from dateutil.relativedelta import relativedelta

from constants import (
    ACTIVE_USER_WINDOW_DAYS,
    JOINED_DATE_FIELDS,
    LAST_LOGIN_FIELDS,
    LOGIN_COUNT_FIELDS,
)
from schemas.dashboard import UserMetrics
from services.field_resolver import resolve_date, resolve_field

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Current UTC time, naive (matches parsed upstream dates)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def activity_windows(now: datetime) -> Dict[str, datetime]:
    """Start boundaries for every reporting window."""
    start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    # Sunday-based weeks: Monday=0 ... Sunday=6
    days_since_sunday = (start_of_today.weekday() + 1) % 7
    start_of_week = start_of_today - timedelta(days=days_since_sunday)
    start_of_month = start_of_today.replace(day=1)

    return {
        'start_of_today': start_of_today,
        'start_of_week': start_of_week,
        'start_of_last_week': start_of_week - timedelta(days=7),
        'start_of_month': start_of_month,
        'start_of_last_month': start_of_month - relativedelta(months=1),
        'active_since': now - timedelta(days=ACTIVE_USER_WINDOW_DAYS),
    }


def login_count(user: Dict[str, Any]) -> float:
    """Numeric login counter, 0 when missing or not a number."""
    value = resolve_field(user, LOGIN_COUNT_FIELDS, default=0)
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).strip())
    except ValueError:
        return 0


def compute_user_metrics(
    users: Sequence[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> UserMetrics:
    """
    Fold the user collection into registration and login counters.

    Args:
        users: Complete user document list
        now: Reference time (naive UTC); defaults to the current time
    """
    now = now or _utcnow()
    w = activity_windows(now)

    counters = {
        'current_day': 0, 'current_week': 0, 'current_month': 0,
        'last_week': 0, 'last_month': 0,
        'active_users': 0, 'inactive_users': 0, 'never_logged_in': 0,
        'logged_in_today': 0, 'logged_in_this_week': 0, 'logged_in_this_month': 0,
        'undated_users': 0,
    }
    total_logins = 0.0

    for user in users:
        joined = resolve_date(user, JOINED_DATE_FIELDS)
        if joined is None:
            counters['undated_users'] += 1
        else:
            if joined >= w['start_of_today']:
                counters['current_day'] += 1
            if joined >= w['start_of_week']:
                counters['current_week'] += 1
            if joined >= w['start_of_month']:
                counters['current_month'] += 1
            if w['start_of_last_week'] <= joined < w['start_of_week']:
                counters['last_week'] += 1
            if w['start_of_last_month'] <= joined < w['start_of_month']:
                counters['last_month'] += 1

        total_logins += login_count(user)

        last_login = resolve_date(user, LAST_LOGIN_FIELDS)
        if last_login is None:
            counters['never_logged_in'] += 1
            counters['inactive_users'] += 1
            continue

        if last_login >= w['active_since']:
            counters['active_users'] += 1
        else:
            counters['inactive_users'] += 1
        if last_login >= w['start_of_today']:
            counters['logged_in_today'] += 1
        if last_login >= w['start_of_week']:
            counters['logged_in_this_week'] += 1
        if last_login >= w['start_of_month']:
            counters['logged_in_this_month'] += 1

    total = len(users)
    login_rate = (counters['active_users'] / total * 100) if total else 0.0
    average_logins = (total_logins / total) if total else 0.0

    if counters['undated_users']:
        logger.info(f"{counters['undated_users']} of {total} users have no parseable join date")

    return UserMetrics(
        total_users=total,
        login_rate=round(login_rate, 1),
        average_login_frequency=round(average_logins, 1),
        **counters,
    )

