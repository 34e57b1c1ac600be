"""
Root pytest configuration for backend tests.

Provides:
- --run-integration flag (tests marked `integration` hit the live upstreams)
- Shared fixtures (settings, fake upstream clients, app, client)
"""

import dataclasses
import sys
from pathlib import Path

# Add backend directory to Python path so imports like
# `from services.pagination import ...` and `from constants import ...` work
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked as integration (requires network access to the upstreams).",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "integration: tests that call the live Appwrite/Directus APIs"
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="integration test (use --run-integration to run)"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# =============================================================================
# Fake upstreams
# =============================================================================

class FakeAppwrite:
    """
    In-memory stand-in for AppwriteClient.

    collections: {collection_id: (name, [documents])}
    failures: {collection_id: exception raised by fetch_all_documents}
    """

    def __init__(self, collections=None, failures=None, list_error=None):
        self.collections = collections or {}
        self.failures = failures or {}
        self.list_error = list_error
        self.fetch_calls = []

    async def alist_collections(self):
        if self.list_error:
            raise self.list_error
        return [{'$id': cid, 'name': name} for cid, (name, _) in self.collections.items()]

    async def fetch_all_documents(self, collection_id, limit=None):
        from services.pagination import PaginationResult, STOP_SHORT_PAGE

        self.fetch_calls.append(collection_id)
        if collection_id in self.failures:
            raise self.failures[collection_id]
        _, documents = self.collections.get(collection_id, ('', []))
        return PaginationResult(
            records=list(documents),
            total=len(documents),
            pages_fetched=1,
            stop_reason=STOP_SHORT_PAGE,
        )


class FakeDirectus:
    """
    In-memory stand-in for DirectusClient.

    items: {collection: [items]}
    failures: {collection: exception}
    """

    def __init__(self, items=None, failures=None, declared_totals=None):
        self.items = items or {}
        self.failures = failures or {}
        self.declared_totals = declared_totals or {}

    async def afetch_items(self, collection):
        if collection in self.failures:
            raise self.failures[collection]
        return list(self.items.get(collection, []))

    async def fetch_all_items(self, collection, limit=None):
        from services.pagination import PaginationResult, STOP_SHORT_PAGE

        records = await self.afetch_items(collection)
        return PaginationResult(
            records=records,
            total=self.declared_totals.get(collection, len(records)),
            pages_fetched=1,
            stop_reason=STOP_SHORT_PAGE,
        )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings():
    """Settings with fixed collection names, independent of the environment."""
    from config import load_settings

    return dataclasses.replace(
        load_settings(),
        appwrite_users_collection_id='users-col',
        directus_wards_collection='wards',
        directus_councillors_collection='councillors',
        directus_municipalities_collection='Muncipality',
        directus_interested_wards_collection='interested_wards',
        directus_interested_councillors_collection='interested_councilors',
        dashboard_cache_ttl_seconds=300,
        top_wards_limit=10,
    )


@pytest.fixture
def fake_appwrite():
    return FakeAppwrite()


@pytest.fixture
def fake_directus():
    return FakeDirectus()


@pytest.fixture
def dashboard_service(fake_appwrite, fake_directus, settings):
    from services.dashboard_service import DashboardService
    return DashboardService(fake_appwrite, fake_directus, settings)


@pytest.fixture
def app(dashboard_service):
    """Create test Flask application wired to the fake upstreams."""
    from app import create_app
    from services.dashboard_service import set_dashboard_service

    set_dashboard_service(dashboard_service)
    app = create_app()
    app.config['TESTING'] = True
    yield app
    set_dashboard_service(None)


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()
