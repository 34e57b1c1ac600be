"""
Dashboard API Routes

Snapshot endpoints (cached, see services/dashboard_service.py):
- GET    /api/dashboard/overview   - collection stats, monthly users, wards
- GET    /api/dashboard/interests  - interested-ward analytics
- GET    /api/dashboard/users      - registration/login metrics
- GET    /api/dashboard/cache      - cache stats
- DELETE /api/dashboard/cache      - drop all cached snapshots

Proxy endpoints (keep upstream credentials server-side):
- GET /api/databases
- GET /api/collections
- GET /api/documents?collectionId=...&all=true
- GET /api/wards
- GET /api/municipalities
- GET /api/interested-wards        - personal fields stripped
- GET /api/interested-councillors

Thin route handlers: params via pydantic models, logic in services.
UpstreamError and ValidationError are turned into error envelopes by
api/middleware/error_envelope.py.
"""

import asyncio
import time

from flask import Blueprint, jsonify, request

from schemas.params import DashboardParams, DocumentsParams

dashboard_bp = Blueprint('dashboard', __name__)


def _query_params() -> dict:
    return request.args.to_dict()


# ============================================================================
# Snapshots
# ============================================================================

def _snapshot_response(view: str):
    from services.dashboard_service import get_dashboard_service

    params = DashboardParams(**_query_params())
    start = time.time()
    snapshot = get_dashboard_service().get_snapshot(view, refresh=params.refresh)

    response = jsonify(snapshot.to_json_dict())
    response.headers['X-Elapsed-Ms'] = str(int((time.time() - start) * 1000))
    return response


@dashboard_bp.route("/dashboard/overview", methods=["GET"])
def dashboard_overview():
    """
    Overview dashboard.

    Query params:
        - refresh: bool (default false) - rebuild instead of serving the cache

    Example:
        GET /api/dashboard/overview?refresh=true
    """
    return _snapshot_response('overview')


@dashboard_bp.route("/dashboard/interests", methods=["GET"])
def dashboard_interests():
    """Interested-ward counts by ward/district with top wards."""
    return _snapshot_response('interests')


@dashboard_bp.route("/dashboard/users", methods=["GET"])
def dashboard_users():
    return _snapshot_response('users')


@dashboard_bp.route("/dashboard/cache", methods=["GET"])
def dashboard_cache_stats():
    from services.dashboard_service import get_dashboard_service
    return jsonify(get_dashboard_service().cache_stats())


@dashboard_bp.route("/dashboard/cache", methods=["DELETE"])
def dashboard_cache_clear():
    from services.dashboard_service import get_dashboard_service
    get_dashboard_service().clear_cache()
    return jsonify({"status": "cleared"})


# ============================================================================
# Appwrite proxies
# ============================================================================

@dashboard_bp.route("/databases", methods=["GET"])
def list_databases():
    from services.appwrite_client import get_appwrite_client
    return jsonify(get_appwrite_client().list_databases())


@dashboard_bp.route("/collections", methods=["GET"])
def list_collections():
    from services.appwrite_client import get_appwrite_client
    collections = get_appwrite_client().list_collections()
    return jsonify({"total": len(collections), "collections": collections})


@dashboard_bp.route("/documents", methods=["GET"])
def list_documents():
    """
    Documents of one collection.

    Query params:
        - collectionId: str (required)
        - all: bool (default true) - page through the whole collection

    Returns:
        {"total": int, "documents": [...], "pagesFetched": int, "warnings": [...]}
    """
    from services.appwrite_client import get_appwrite_client

    params = DocumentsParams(**_query_params())
    client = get_appwrite_client()

    if not params.all_pages:
        return jsonify(client.get_documents(params.collection_id))

    result = asyncio.run(client.fetch_all_documents(params.collection_id))
    return jsonify({
        "total": result.total if result.total is not None else len(result.records),
        "documents": result.records,
        "pagesFetched": result.pages_fetched,
        "warnings": result.warnings,
    })


# ============================================================================
# Directus proxies
# ============================================================================

def _directus_items(collection: str):
    from services.directus_client import get_directus_client
    return get_directus_client().fetch_items(collection)


@dashboard_bp.route("/wards", methods=["GET"])
def list_wards():
    from config import get_settings
    return jsonify({"data": _directus_items(get_settings().directus_wards_collection)})


@dashboard_bp.route("/municipalities", methods=["GET"])
def list_municipalities():
    from config import get_settings
    return jsonify({"data": _directus_items(get_settings().directus_municipalities_collection)})


@dashboard_bp.route("/interested-wards", methods=["GET"])
def list_interested_wards():
    """All interest sign-ups, without names, phone numbers or emails."""
    from config import get_settings
    from services.directus_client import get_directus_client
    from services.privacy import strip_personal_fields

    client = get_directus_client()
    result = asyncio.run(client.fetch_all_items(get_settings().directus_interested_wards_collection))
    return jsonify({
        "data": strip_personal_fields(result.records),
        "meta": {
            "total_count": result.total if result.total is not None else len(result.records),
            "pages_fetched": result.pages_fetched,
        },
    })


@dashboard_bp.route("/interested-councillors", methods=["GET"])
def list_interested_councillors():
    from config import get_settings
    return jsonify({
        "data": _directus_items(get_settings().directus_interested_councillors_collection)
    })
