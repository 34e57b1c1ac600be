"""
Tests for the offset/limit paginator.

Fetchers are in-memory fakes that record the (offset, limit) of every call.
"""

import asyncio

import pytest

from services.pagination import (
    STOP_EMPTY_PAGE,
    STOP_MAX_ATTEMPTS,
    STOP_MAX_OFFSET,
    STOP_SHORT_PAGE,
    STOP_TOTAL_REACHED,
    Page,
    PageRequestState,
    page_number_adapter,
    paginate,
)


# =============================================================================
# Fixtures
# =============================================================================

class FakeCollection:
    """Serves `size` records, reporting `declared` as total (per page if a list)."""

    def __init__(self, size, declared=None):
        self.records = [{'id': i} for i in range(size)]
        self.declared = declared
        self.calls = []

    async def fetch(self, offset, limit):
        self.calls.append((offset, limit))
        if isinstance(self.declared, list):
            total = self.declared[min(len(self.calls), len(self.declared)) - 1]
        else:
            total = self.declared if self.declared is not None else len(self.records)
        return Page(records=self.records[offset:offset + limit], total=total)


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# Completeness
# =============================================================================

class TestPaginateCompleteness:

    @pytest.mark.parametrize("size,limit,expected_calls", [
        (0, 100, 1),
        (1, 100, 1),
        (99, 100, 1),
        (250, 100, 3),
        (1000, 100, 10),
    ])
    def test_fetches_every_record_in_order(self, size, limit, expected_calls):
        collection = FakeCollection(size)
        result = run(paginate(collection.fetch, limit=limit))

        assert [r['id'] for r in result.records] == list(range(size))
        assert len(collection.calls) == expected_calls
        assert result.pages_fetched == expected_calls

    def test_offsets_advance_by_records_returned(self):
        collection = FakeCollection(250)
        run(paginate(collection.fetch, limit=100))
        assert collection.calls == [(0, 100), (100, 100), (200, 100)]

    def test_short_page_stops(self):
        result = run(paginate(FakeCollection(250).fetch, limit=100))
        assert result.stop_reason == STOP_SHORT_PAGE
        assert result.warnings == []

    def test_empty_collection_stops_on_empty_page(self):
        result = run(paginate(FakeCollection(0).fetch, limit=100))
        assert result.records == []
        assert result.stop_reason == STOP_EMPTY_PAGE

    def test_exact_multiple_stops_on_total(self):
        """200 records at 100/page: the declared total ends it without a third call."""
        collection = FakeCollection(200)
        result = run(paginate(collection.fetch, limit=100))

        assert len(result.records) == 200
        assert len(collection.calls) == 2
        assert result.stop_reason == STOP_TOTAL_REACHED

    def test_exact_multiple_without_total_needs_empty_page(self):
        collection = FakeCollection(200, declared=0)
        result = run(paginate(collection.fetch, limit=100))

        assert len(result.records) == 200
        assert len(collection.calls) == 3
        assert result.stop_reason == STOP_EMPTY_PAGE


# =============================================================================
# Declared totals
# =============================================================================

class TestDeclaredTotal:

    def test_zero_total_does_not_halt(self):
        """A stale total of 0 must not stop the run while pages are full."""
        collection = FakeCollection(250, declared=0)
        result = run(paginate(collection.fetch, limit=100))
        assert len(result.records) == 250

    def test_total_recaptured_after_zero(self):
        """0 on the first page, real count afterwards."""
        collection = FakeCollection(300, declared=[0, 300, 300])
        result = run(paginate(collection.fetch, limit=100))

        assert len(result.records) == 300
        assert result.total == 300
        assert result.stop_reason == STOP_TOTAL_REACHED

    def test_result_total_is_last_observed(self):
        collection = FakeCollection(150, declared=[150, 149])
        result = run(paginate(collection.fetch, limit=100))

        assert len(result.records) == 150
        assert result.total == 149

    def test_total_larger_than_data_stops_on_short_page(self):
        collection = FakeCollection(120, declared=5000)
        result = run(paginate(collection.fetch, limit=100))

        assert len(result.records) == 120
        assert result.stop_reason == STOP_SHORT_PAGE

    def test_capture_total_keeps_first_positive(self):
        state = PageRequestState(limit=100)
        state.capture_total(0)
        assert state.total_known is None
        state.capture_total(40)
        state.capture_total(90)
        assert state.total_known == 40


# =============================================================================
# Safety limits
# =============================================================================

class TestSafetyLimits:

    def test_max_attempts_stops_with_warning(self):
        collection = FakeCollection(1000, declared=0)
        result = run(paginate(collection.fetch, limit=100, max_attempts=3))

        assert len(collection.calls) == 3
        assert len(result.records) == 300
        assert result.stop_reason == STOP_MAX_ATTEMPTS
        assert len(result.warnings) == 1

    def test_max_offset_stops_with_warning(self):
        collection = FakeCollection(1000, declared=0)
        result = run(paginate(collection.fetch, limit=100, max_offset=250))

        # offsets 0, 100, 200 -> offset 300 > 250 after the third page
        assert len(collection.calls) == 3
        assert result.stop_reason == STOP_MAX_OFFSET
        assert result.warnings

    @pytest.mark.parametrize("kwargs", [
        {'limit': 0},
        {'limit': -5},
        {'max_attempts': 0},
        {'max_offset': -1},
    ])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            run(paginate(FakeCollection(10).fetch, **kwargs))


# =============================================================================
# Failures
# =============================================================================

class TestFailures:

    def test_failure_on_later_page_propagates(self):
        calls = []

        async def fetch(offset, limit):
            calls.append(offset)
            if offset >= 200:
                raise RuntimeError("boom")
            return Page(records=[{'id': offset + i} for i in range(limit)], total=0)

        with pytest.raises(RuntimeError, match="boom"):
            run(paginate(fetch, limit=100))
        assert calls == [0, 100, 200]


# =============================================================================
# Page-number adapter
# =============================================================================

class TestPageNumberAdapter:

    def test_offsets_become_page_numbers(self):
        pages_requested = []
        data = [{'id': i} for i in range(230)]

        async def fetch_numbered(page, limit):
            pages_requested.append(page)
            start = (page - 1) * limit
            return Page(records=data[start:start + limit], total=len(data))

        result = run(paginate(page_number_adapter(fetch_numbered), limit=100))

        assert pages_requested == [1, 2, 3]
        assert [r['id'] for r in result.records] == list(range(230))
