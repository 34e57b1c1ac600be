"""
Field Resolver - Ordered alias lookup for loosely-typed upstream records.

Upstream collections do not agree on attribute names: a ward reference may
arrive as `ward_number`, `ward`, `wardId` or `ward_id`, and a join date as
`joinedDate`, `$createdAt` or `created_at`. Each logical attribute gets one
FieldCandidates constant (see constants.py) and every lookup goes through here.

Rules:
- First candidate with a present, non-null, non-blank value wins
- Keys are normalized to strings before use in aggregation, so 7, 7.0 and "7"
  land in the same bucket
- Dates are parsed ISO-8601 first, then leniently; failure returns None

Usage:
    from services.field_resolver import resolve_key, resolve_date
    from constants import WARD_NUMBER_FIELDS, JOINED_DATE_FIELDS

    ward = resolve_key(record, WARD_NUMBER_FIELDS)          # "5" or "Unknown"
    joined = resolve_date(record, JOINED_DATE_FIELDS)       # datetime or None
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Tuple

from dateutil import parser as date_parser

UNKNOWN_KEY = "Unknown"

# Two fill-in dates that differ in year, month and day
_FILL_A = datetime(1900, 1, 1)
_FILL_B = datetime(1904, 2, 2)
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")

Record = Dict[str, Any]


@dataclass(frozen=True)
class FieldCandidates:
    """Ordered aliases for one logical attribute. First match wins."""
    name: str
    aliases: Tuple[str, ...]

    def __post_init__(self):
        if not self.aliases:
            raise ValueError(f"FieldCandidates '{self.name}' needs at least one alias")

    def __iter__(self):
        return iter(self.aliases)


def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def resolve_field(
    record: Record,
    candidates: FieldCandidates,
    default: Any = None,
) -> Any:
    """
    Return the first present value among the candidate names.

    Args:
        record: Upstream record (dict)
        candidates: Ordered alias list for the attribute
        default: Returned when no candidate carries a value

    Returns:
        Raw value (not normalized) or default
    """
    if not isinstance(record, dict):
        return default
    for name in candidates.aliases:
        value = record.get(name)
        if not _is_absent(value):
            return value
    return default


def normalize_key(value: Any, default: str = UNKNOWN_KEY) -> str:
    """
    Coerce a resolved value to the string used as an aggregation key.

    - Strings are stripped
    - Integral floats render without the fraction (7.0 -> "7")
    - Relation objects ({"id": 3, ...}) resolve to their id
    - None / blank -> default
    """
    if isinstance(value, dict):
        value = value.get("id", value.get("$id"))
    if _is_absent(value):
        return default
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def resolve_key(
    record: Record,
    candidates: FieldCandidates,
    default: str = UNKNOWN_KEY,
) -> str:
    """Resolve and normalize in one step. Never returns None."""
    return normalize_key(resolve_field(record, candidates), default=default)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a date-like value.

    Accepts datetime/date objects, ISO-8601 strings ("2024-01-15",
    "2024-01-15T10:30:00.000+00:00") and anything dateutil can read as a full date.
    Returns None for blanks, numbers, unparseable text and partial dates
    ("5", "Jan", "March 2024").

    Offset-aware values are converted to UTC and returned naive, so every
    parsed value compares against every other.
    """
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if _ISO_DATE.match(text):
        try:
            return _to_naive_utc(date_parser.isoparse(text))
        except (ValueError, OverflowError):
            pass
    try:
        first = date_parser.parse(text, default=_FILL_A)
        second = date_parser.parse(text, default=_FILL_B)
    except (ValueError, OverflowError):
        return None
    # Missing year, month or day would be filled from the default
    if first.date() != second.date():
        return None
    return _to_naive_utc(first)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def resolve_date(record: Record, candidates: FieldCandidates) -> Optional[datetime]:
    """Resolve the first candidate and parse it. None when missing or malformed."""
    return parse_datetime(resolve_field(record, candidates))
