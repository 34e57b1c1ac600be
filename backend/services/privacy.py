"""
Personal data filter for records proxied to the browser.

Interest sign-ups carry names, phone numbers and emails. Aggregation runs on
the raw records server-side; anything returned verbatim goes through
strip_personal_fields() first.
"""

from typing import Any, Dict, Iterable, List, Sequence

from constants import PERSONAL_FIELD_MARKERS


def is_personal_field(key: str, markers: Sequence[str] = PERSONAL_FIELD_MARKERS) -> bool:
    """True when the key contains any personal-data marker (case-insensitive)."""
    lower = key.lower()
    return any(marker in lower for marker in markers)


def strip_personal_fields(
    records: Iterable[Dict[str, Any]],
    markers: Sequence[str] = PERSONAL_FIELD_MARKERS,
) -> List[Dict[str, Any]]:
    """Copies of the records without personal keys."""
    return [
        {key: value for key, value in record.items() if not is_personal_field(key, markers)}
        for record in records
    ]
