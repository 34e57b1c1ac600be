"""
Tests for alias resolution and key/date normalization.
"""

from datetime import date, datetime

import pytest

from constants import JOINED_DATE_FIELDS, WARD_NUMBER_FIELDS
from services.field_resolver import (
    UNKNOWN_KEY,
    FieldCandidates,
    normalize_key,
    parse_datetime,
    resolve_date,
    resolve_field,
    resolve_key,
)


class TestResolveField:

    def test_first_candidate_wins(self):
        record = {'ward': '9', 'ward_number': '3'}
        assert resolve_field(record, WARD_NUMBER_FIELDS) == '3'

    def test_falls_through_absent_values(self):
        record = {'ward_number': None, 'ward': '  ', 'wardId': 12}
        assert resolve_field(record, WARD_NUMBER_FIELDS) == 12

    def test_default_when_nothing_matches(self):
        assert resolve_field({'other': 1}, WARD_NUMBER_FIELDS, default='x') == 'x'

    def test_zero_is_a_value(self):
        assert resolve_field({'ward_number': 0}, WARD_NUMBER_FIELDS) == 0

    def test_non_dict_record(self):
        assert resolve_field(None, WARD_NUMBER_FIELDS) is None

    def test_empty_candidates_rejected(self):
        with pytest.raises(ValueError):
            FieldCandidates('nothing', ())


class TestNormalizeKey:

    @pytest.mark.parametrize("value,expected", [
        (5, "5"),
        ("5", "5"),
        (" 5 ", "5"),
        (5.0, "5"),
        (5.5, "5.5"),
        (True, "true"),
        ({'id': 7, 'name': 'x'}, "7"),
        ({'$id': 'abc'}, "abc"),
        (None, UNKNOWN_KEY),
        ("", UNKNOWN_KEY),
    ])
    def test_normalization(self, value, expected):
        assert normalize_key(value) == expected

    def test_late_alias_is_normalized(self):
        assert resolve_key({'ward_id': 5}, WARD_NUMBER_FIELDS) == "5"

    def test_alias_variants_share_a_key(self):
        records = [{'ward_number': 5}, {'ward': '5'}, {'ward_id': 5.0}]
        assert {resolve_key(r, WARD_NUMBER_FIELDS) for r in records} == {"5"}

    def test_missing_goes_to_default(self):
        assert resolve_key({}, WARD_NUMBER_FIELDS) == UNKNOWN_KEY
        assert resolve_key({}, WARD_NUMBER_FIELDS, default='none') == 'none'


class TestParseDatetime:

    def test_iso_date(self):
        assert parse_datetime("2024-01-15") == datetime(2024, 1, 15)

    def test_iso_with_offset_becomes_naive_utc(self):
        assert parse_datetime("2024-01-15T05:30:00+05:30") == datetime(2024, 1, 15, 0, 0)

    def test_appwrite_timestamp(self):
        assert parse_datetime("2024-03-01T10:20:30.123+00:00") == datetime(2024, 3, 1, 10, 20, 30, 123000)

    def test_lenient_fallback(self):
        assert parse_datetime("March 5, 2024") == datetime(2024, 3, 5)

    def test_compact_full_date(self):
        assert parse_datetime("20240115") == datetime(2024, 1, 15)

    def test_date_object(self):
        assert parse_datetime(date(2024, 2, 29)) == datetime(2024, 2, 29)

    @pytest.mark.parametrize("value", [
        None, "", "   ", "pending", 12345,
        "5", "12", "Jan", "March 2024", "2024-03",
    ])
    def test_unparseable_is_none(self, value):
        assert parse_datetime(value) is None

    def test_resolve_date_uses_aliases(self):
        record = {'joinedDate': None, '$createdAt': "2024-02-10T08:00:00.000+00:00"}
        assert resolve_date(record, JOINED_DATE_FIELDS) == datetime(2024, 2, 10, 8, 0)
