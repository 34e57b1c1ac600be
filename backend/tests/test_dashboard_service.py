"""
Tests for the dashboard snapshot pipelines, using in-memory upstreams
(see conftest.FakeAppwrite / FakeDirectus).
"""

import asyncio

import pytest

from services.dashboard_service import TTLCache, find_metric_collection
from services.upstream import UpstreamError, UpstreamTransportError
from schemas.dashboard import CollectionCount


# =============================================================================
# Fixtures
# =============================================================================

WARDS = [
    {'id': 1, 'ward_name': 'Fort ', 'ward_number': 5, 'ward_councillor': 11, 'muncipality': 21},
    {'id': 2, 'ward_name': 'Beach', 'ward_number': 6, 'ward_councillor': 99, 'muncipality': 21},
]
COUNCILLORS = [{'id': 11, 'councilorName': 'Asha'}]
MUNICIPALITIES = [{'id': 21, 'name': 'Kochi'}]


@pytest.fixture
def directus_refs(fake_directus):
    fake_directus.items.update({
        'wards': WARDS,
        'councillors': COUNCILLORS,
        'Muncipality': MUNICIPALITIES,
    })
    return fake_directus


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# Collection matching
# =============================================================================

class TestFindMetricCollection:

    def _counts(self, *pairs):
        return [CollectionCount(id=name, name=name, document_count=n) for name, n in pairs]

    def test_exact_match_preferred(self):
        counts = self._counts(('user_logs', 50), ('Users', 10))
        assert find_metric_collection(counts, ('user', 'users')).name == 'Users'

    def test_exact_match_needs_documents(self):
        counts = self._counts(('users', 0), ('app_users', 4))
        assert find_metric_collection(counts, ('users',)).name == 'users'
        counts = self._counts(('app_users', 4), ('users', 0))
        assert find_metric_collection(counts, ('users',)).name == 'app_users'

    def test_partial_match(self):
        counts = self._counts(('Blood Donors List', 3))
        assert find_metric_collection(counts, ('blood donor',)).name == 'Blood Donors List'

    def test_no_match(self):
        assert find_metric_collection(self._counts(('misc', 1)), ('volunteer',)) is None


# =============================================================================
# Overview
# =============================================================================

class TestOverview:

    def test_stats_wards_and_histogram(self, dashboard_service, fake_appwrite, directus_refs):
        fake_appwrite.collections.update({
            'c-users': ('users', [
                {'wardId': 1, '$createdAt': '2024-03-02T00:00:00.000+00:00'},
                {'ward_id': '1', 'joinedDate': '2023-03-09'},
                {'ward': 2, 'joinedDate': '2024-07-01'},
            ]),
            'c-donors': ('Blood Donors', [{'wardId': 2}]),
            'c-misc': ('settings', [{}]),
        })

        snapshot = run(dashboard_service.build_overview())

        assert snapshot.stats.total_users == 3
        assert snapshot.stats.total_blood_donors == 1
        assert snapshot.stats.total_volunteers == 0
        assert [c.document_count for c in snapshot.collections] == [3, 1, 1]

        march = snapshot.monthly_users.buckets[2]
        assert (march.month, march.count) == ('Mar', 2)

        fort, beach = snapshot.wards
        assert fort.ward_name == 'Fort'
        assert fort.councillor_name == 'Asha'
        assert fort.municipality_name == 'Kochi'
        assert beach.councillor_name == 'Councillor #99'
        assert fort.analytics.users == 2
        assert beach.analytics.users == 1
        assert beach.analytics.donors == 1
        assert snapshot.warnings == []

    def test_failed_collection_degrades(self, dashboard_service, fake_appwrite, directus_refs):
        fake_appwrite.collections.update({
            'c-users': ('users', [{'wardId': 1}]),
            'c-volunteers': ('volunteers', []),
        })
        fake_appwrite.failures['c-volunteers'] = UpstreamTransportError("503", status_code=503)

        snapshot = run(dashboard_service.build_overview())

        volunteers = [c for c in snapshot.collections if c.id == 'c-volunteers'][0]
        assert volunteers.document_count == 0
        assert volunteers.error
        assert snapshot.stats.total_users == 1
        assert any('volunteers' in w for w in snapshot.warnings)

    def test_missing_reference_lists_use_labels(self, dashboard_service, fake_appwrite, directus_refs):
        directus_refs.failures['councillors'] = UpstreamTransportError("timeout")

        snapshot = run(dashboard_service.build_overview())

        assert [w.councillor_name for w in snapshot.wards] == ['Councillor #11', 'Councillor #99']
        assert snapshot.wards[0].municipality_name == 'Kochi'
        assert len(snapshot.warnings) == 1

    def test_ward_without_id_gets_no_unassigned_records(self, dashboard_service, fake_appwrite, fake_directus):
        fake_directus.items['wards'] = [{'ward_name': 'No id'}, {'id': 1, 'ward_name': 'Fort'}]
        fake_appwrite.collections['c-users'] = ('users', [{}, {}, {}, {'wardId': 1}])

        snapshot = run(dashboard_service.build_overview())

        no_id, fort = snapshot.wards
        assert no_id.id == 'Unknown'
        assert no_id.analytics.users == 0
        assert fort.analytics.users == 1

    def test_collection_list_failure_is_fatal(self, dashboard_service, fake_appwrite, directus_refs):
        fake_appwrite.list_error = UpstreamTransportError("down")
        with pytest.raises(UpstreamError):
            run(dashboard_service.build_overview())

    def test_programming_errors_are_not_degraded(self, dashboard_service, fake_appwrite, directus_refs):
        fake_appwrite.collections['c-users'] = ('users', [])
        fake_appwrite.failures['c-users'] = KeyError('bug')
        with pytest.raises(KeyError):
            run(dashboard_service.build_overview())


# =============================================================================
# Interests
# =============================================================================

class TestInterests:

    def test_counts_and_enriched_top_wards(self, dashboard_service, directus_refs):
        directus_refs.items['interested_wards'] = [
            {'ward_number': 5, 'District': 'Ernakulam', 'panchayath_name': 'Fort P', 'name': 'A'},
            {'ward': '5', 'district': 'Ernakulam'},
            {'wardId': 7, 'District': 'Thrissur'},
            {'District': 'Thrissur'},
        ]
        directus_refs.items['interested_councilors'] = [{'id': 1, 'name': 'X'}]
        directus_refs.declared_totals['interested_wards'] = 4

        snapshot = run(dashboard_service.build_interests())

        assert snapshot.by_ward.total_count == 4
        assert snapshot.by_ward.count_by_key == {'5': 2, '7': 1, 'Unknown': 1}
        assert snapshot.by_district.count_by_key == {'Ernakulam': 2, 'Thrissur': 2}
        assert snapshot.declared_total == 4
        assert snapshot.councillors == [{'id': 1, 'name': 'X'}]

        top = snapshot.by_ward.ranked_top[0].to_json_dict()
        assert top['key'] == '5'
        assert top['wardName'] == 'Fort (Ward #5)'
        assert top['panchayathName'] == 'Fort P'
        assert top['councillorName'] == 'Asha'
        assert top['municipalityName'] == 'Kochi'

        second = snapshot.by_ward.ranked_top[1].to_json_dict()
        assert second['wardName'] == 'Ward #7'
        assert second['councillorName'] is None

    def test_top_wards_limit(self, dashboard_service, directus_refs):
        directus_refs.items['interested_wards'] = [{'ward_number': i} for i in range(25)]
        snapshot = run(dashboard_service.build_interests())

        assert len(snapshot.by_ward.ranked_top) == 10
        assert snapshot.by_ward.group_count == 25

    def test_interest_fetch_failure_is_fatal(self, dashboard_service, directus_refs):
        directus_refs.failures['interested_wards'] = UpstreamTransportError("down")
        with pytest.raises(UpstreamError):
            run(dashboard_service.build_interests())

    def test_councillor_failure_degrades(self, dashboard_service, directus_refs):
        directus_refs.items['interested_wards'] = [{'ward_number': 1}]
        directus_refs.failures['interested_councilors'] = UpstreamTransportError("404", status_code=404)

        snapshot = run(dashboard_service.build_interests())

        assert snapshot.councillors == []
        assert snapshot.warnings


# =============================================================================
# Users
# =============================================================================

def test_users_snapshot(dashboard_service, fake_appwrite):
    fake_appwrite.collections['users-col'] = ('users', [
        {'joinedDate': '2024-01-15', 'lastLogin': '2024-01-20'},
        {'joinedDate': '2024-01-31'},
        {'$createdAt': '2024-02-03T00:00:00.000+00:00'},
        {},
    ])

    snapshot = run(dashboard_service.build_users())

    assert snapshot.metrics.total_users == 4
    assert snapshot.metrics.undated_users == 1
    assert snapshot.monthly.as_key_counts() == [{'2024-01': 2}, {'2024-02': 1}]
    assert fake_appwrite.fetch_calls == ['users-col']


# =============================================================================
# Caching
# =============================================================================

class TestCaching:

    def test_snapshot_cached_until_refresh(self, dashboard_service, fake_appwrite):
        fake_appwrite.collections['users-col'] = ('users', [{}])

        first = dashboard_service.get_snapshot('users')
        second = dashboard_service.get_snapshot('users')
        assert first is second
        assert len(fake_appwrite.fetch_calls) == 1

        third = dashboard_service.get_snapshot('users', refresh=True)
        assert third is not first
        assert len(fake_appwrite.fetch_calls) == 2

    def test_failed_refresh_keeps_previous_snapshot(self, dashboard_service, fake_appwrite):
        fake_appwrite.collections['users-col'] = ('users', [{}])
        first = dashboard_service.get_snapshot('users')

        fake_appwrite.failures['users-col'] = UpstreamTransportError("down")
        with pytest.raises(UpstreamError):
            dashboard_service.get_snapshot('users', refresh=True)
        assert dashboard_service.get_snapshot('users') is first

    def test_unknown_view(self, dashboard_service):
        with pytest.raises(ValueError):
            dashboard_service.get_snapshot('nope')

    def test_clear_cache(self, dashboard_service, fake_appwrite):
        fake_appwrite.collections['users-col'] = ('users', [])
        dashboard_service.get_snapshot('users')
        assert dashboard_service.cache_stats()['size'] == 1

        dashboard_service.clear_cache()
        assert dashboard_service.cache_stats()['size'] == 0


def test_ttl_cache_expiry(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr('services.dashboard_service.time.time', lambda: clock[0])

    cache = TTLCache(maxsize=2, ttl=10)
    cache.set('a', 1)
    clock[0] += 9
    assert cache.get('a') == 1
    clock[0] += 2
    assert cache.get('a') is None


def test_ttl_cache_evicts_oldest():
    cache = TTLCache(maxsize=2, ttl=60)
    cache.set('a', 1)
    cache.set('b', 2)
    cache.set('c', 3)
    assert cache.get('a') is None
    assert cache.get('c') == 3
