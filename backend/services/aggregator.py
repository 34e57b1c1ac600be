"""
Aggregator - Fold a complete record set into counts, rankings and histograms

All functions are pure: records in, new objects out. Field access goes through
services.field_resolver so alias handling lives in one place.

Core operations:
- count_by_key(): category counts, every record in exactly one bucket
- rank_top(): top-N by count, ties keep first-seen order
- monthly_histogram(): calendar (Jan..Dec) or chronological "YYYY-MM" buckets
- build_reference_index() / join_references(): keyed display-name lookup
- count_per_group(): per-entity rollup (e.g. users per ward)
- summarize(): the above combined into an AggregateResult

Usage:
    from services.aggregator import summarize, monthly_histogram, HistogramMode
    from constants import WARD_NUMBER_FIELDS, JOINED_DATE_FIELDS

    result = summarize(records, WARD_NUMBER_FIELDS, top_n=10)
    trend = monthly_histogram(records, JOINED_DATE_FIELDS, HistogramMode.YEAR_MONTH)
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from constants import MONTH_LABELS
from schemas.dashboard import AggregateResult, MonthBucket, MonthlyHistogram, RankedEntry
from services.field_resolver import (
    UNKNOWN_KEY,
    FieldCandidates,
    Record,
    normalize_key,
    resolve_date,
    resolve_field,
    resolve_key,
)

DEFAULT_TOP_N = 10

Enricher = Callable[[str], Mapping[str, Any]]


class HistogramMode(str, Enum):
    """How dated records are bucketed."""
    CALENDAR = 'calendar'        # 12 buckets, all years collapsed
    YEAR_MONTH = 'year_month'    # one bucket per YYYY-MM, chronological


# =============================================================================
# COUNTING & RANKING
# =============================================================================

def count_by_key(
    records: Iterable[Record],
    candidates: FieldCandidates,
    default: str = UNKNOWN_KEY,
) -> Dict[str, int]:
    """
    Count records per resolved key.

    Unresolved records go to the `default` bucket, never dropped.
    Dict order is first-seen key order.
    """
    counts: Dict[str, int] = {}
    for record in records:
        key = resolve_key(record, candidates, default=default)
        counts[key] = counts.get(key, 0) + 1
    return counts


def rank_top(
    counts: Mapping[str, int],
    top_n: Optional[int] = DEFAULT_TOP_N,
    enrich: Optional[Enricher] = None,
) -> List[RankedEntry]:
    """
    Rank keys by count, descending.

    sorted() is stable, so equal counts keep the mapping's insertion
    (first-seen) order.

    Args:
        counts: key -> count, in first-seen order
        top_n: Maximum entries returned (None = all)
        enrich: Optional key -> extra fields for the entry
    """
    if top_n is not None and top_n <= 0:
        return []

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:top_n]
    entries = []
    for key, count in ranked:
        extra = dict(enrich(key)) if enrich else {}
        extra.pop('key', None)
        extra.pop('count', None)
        entries.append(RankedEntry(key=key, count=count, **extra))
    return entries


def summarize(
    records: Sequence[Record],
    candidates: FieldCandidates,
    top_n: Optional[int] = DEFAULT_TOP_N,
    enrich: Optional[Enricher] = None,
    default: str = UNKNOWN_KEY,
) -> AggregateResult:
    """Counts, top-N ranking and group count for one record set."""
    counts = count_by_key(records, candidates, default=default)
    return AggregateResult(
        total_count=len(records),
        count_by_key=counts,
        ranked_top=rank_top(counts, top_n=top_n, enrich=enrich),
        group_count=len(counts),
    )


def first_seen_details(
    records: Iterable[Record],
    key_candidates: FieldCandidates,
    detail_candidates: Mapping[str, FieldCandidates],
    default: str = UNKNOWN_KEY,
) -> Dict[str, Dict[str, Any]]:
    """
    Descriptive fields per key, taken from the first record seen for that key.

    Args:
        key_candidates: Attribute the records are grouped by
        detail_candidates: output field name -> candidates to read it from

    Returns:
        key -> {field: value or None}
    """
    details: Dict[str, Dict[str, Any]] = {}
    for record in records:
        key = resolve_key(record, key_candidates, default=default)
        if key in details:
            continue
        details[key] = {
            name: resolve_field(record, candidates)
            for name, candidates in detail_candidates.items()
        }
    return details


# =============================================================================
# TEMPORAL HISTOGRAMS
# =============================================================================

def monthly_histogram(
    records: Iterable[Record],
    candidates: FieldCandidates,
    mode: HistogramMode = HistogramMode.CALENDAR,
) -> MonthlyHistogram:
    """
    Bucket records by the month of a resolved date.

    Records without a parseable date are left out of the buckets and counted
    in `undated_count`.

    CALENDAR: always 12 buckets Jan..Dec (zeros included), years collapsed.
    YEAR_MONTH: only months that occur, sorted by "YYYY-MM".
    """
    mode = HistogramMode(mode)
    counts: Counter = Counter()
    dated = 0
    undated = 0

    for record in records:
        moment = resolve_date(record, candidates)
        if moment is None:
            undated += 1
            continue
        dated += 1
        if mode is HistogramMode.CALENDAR:
            counts[moment.month] += 1
        else:
            counts[f"{moment.year:04d}-{moment.month:02d}"] += 1

    if mode is HistogramMode.CALENDAR:
        buckets = [
            MonthBucket(
                key=f"{number:02d}",
                month=MONTH_LABELS[number - 1],
                month_number=number,
                count=counts.get(number, 0),
            )
            for number in range(1, 13)
        ]
    else:
        buckets = []
        for key in sorted(counts):
            year, month = key.split('-')
            buckets.append(MonthBucket(
                key=key,
                month=MONTH_LABELS[int(month) - 1],
                month_number=int(month),
                year=int(year),
                count=counts[key],
            ))

    return MonthlyHistogram(
        mode=mode.value,
        buckets=buckets,
        dated_count=dated,
        undated_count=undated,
    )


# =============================================================================
# REFERENCE JOINS
# =============================================================================

@dataclass(frozen=True)
class ReferenceJoin:
    """
    One keyed lookup applied to every primary entity.

    index is None when the reference list could not be fetched; every entity
    then gets the synthesized label.
    """
    foreign_key: FieldCandidates
    index: Optional[Mapping[str, str]]
    label: str
    target: str


def fallback_label(label: str, foreign_key: Any) -> str:
    """'<Label> #<key>' for entities without a reference match."""
    return f"{label} #{normalize_key(foreign_key)}"


def build_reference_index(
    records: Iterable[Record],
    id_candidates: FieldCandidates,
    name_candidates: FieldCandidates,
    default_name: str = UNKNOWN_KEY,
) -> Dict[str, str]:
    """
    Normalized id -> display name for a reference list.

    Records without an id are skipped; records without a name map to
    default_name. On duplicate ids the first record wins.
    """
    index: Dict[str, str] = {}
    for record in records:
        record_id = resolve_field(record, id_candidates)
        if record_id is None:
            continue
        key = normalize_key(record_id)
        if key in index:
            continue
        name = resolve_field(record, name_candidates)
        index[key] = str(name).strip() if name is not None else default_name
    return index


def resolve_display_name(
    foreign_key: Any,
    index: Optional[Mapping[str, str]],
    label: str,
) -> str:
    """Look up one foreign key; synthesize '<Label> #<key>' on a miss."""
    if index and foreign_key is not None:
        name = index.get(normalize_key(foreign_key))
        if name:
            return name
    return fallback_label(label, foreign_key)


def join_references(
    entities: Iterable[Record],
    joins: Sequence[ReferenceJoin],
) -> List[Dict[str, Any]]:
    """
    Attach one display name per join to each entity.

    Returns new dicts; inputs are not modified. Each entity resolves to at
    most one name per reference list.
    """
    joined = []
    for entity in entities:
        row = dict(entity)
        for join in joins:
            foreign_key = resolve_field(entity, join.foreign_key)
            row[join.target] = resolve_display_name(foreign_key, join.index, join.label)
        joined.append(row)
    return joined


# =============================================================================
# GROUP ROLLUPS
# =============================================================================

def count_per_group(
    group_keys: Iterable[Any],
    records: Iterable[Record],
    candidates: FieldCandidates,
) -> Dict[str, int]:
    """
    Number of records whose resolved key equals each group key.

    Keys are normalized on both sides, so a ward id 7 matches "7".
    Groups with no records get 0. A group without a key gets 0 under
    UNKNOWN_KEY; records with no reference are never attributed to it.
    """
    counts = count_by_key(records, candidates)
    per_group = {}
    for group_key in group_keys:
        key = normalize_key(group_key, default=None)
        if key is None:
            per_group[UNKNOWN_KEY] = 0
        else:
            per_group[key] = counts.get(key, 0)
    return per_group
