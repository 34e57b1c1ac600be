"""
Flask Application Factory - Ward Analytics Dashboard API

The browser never talks to Appwrite or Directus directly: every call goes
through this API so the server-side API key stays on the server.

Dashboard snapshots are built from complete collections (all pages) and
cached in-process; see services/dashboard_service.py.
"""

import logging
import os

from flask import Flask, jsonify, request
from flask_cors import CORS

from config import Config

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(request_id)s] %(message)s"


def configure_logging(level: str = None) -> None:
    """Root logging with request ids (LOG_LEVEL env, default INFO)."""
    from api.middleware.request_id import RequestIdFilter

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    # Keep snapshot keys in build order (months, ranked wards)
    app.json.sort_keys = False

    CORS(app,
         resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
         methods=["GET", "OPTIONS", "DELETE"],
         allow_headers=["Content-Type", "X-Request-ID"],
         expose_headers=["X-Request-ID", "X-Elapsed-Ms"],
         supports_credentials=False)

    # === MIDDLEWARE ===
    from api.middleware import (
        setup_error_handlers,
        setup_request_id_middleware,
        setup_request_logging_middleware,
    )
    setup_request_id_middleware(app)
    setup_request_logging_middleware(app)
    setup_error_handlers(app)

    # Snapshots change on every refresh; never let a proxy serve a stale one
    @app.after_request
    def add_cache_control(response):
        if request.path.startswith('/api/'):
            response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate'
            response.headers['Pragma'] = 'no-cache'
        return response

    # Register routes
    from routes.dashboard import dashboard_bp
    app.register_blueprint(dashboard_bp, url_prefix='/api')

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "name": "Ward Analytics Dashboard API",
            "status": "running",
            "endpoints": sorted(
                str(rule) for rule in app.url_map.iter_rules()
                if str(rule).startswith('/api/')
            ),
        })

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    return app


def run_app():
    """Main entry point for local development - starts server with Flask's dev server."""
    configure_logging()
    app = create_app()

    from config import get_settings
    settings = get_settings()
    logger.info("=" * 60)
    logger.info("Starting Ward Analytics Dashboard API")
    logger.info(f"   Appwrite: {settings.appwrite_endpoint} (database {settings.appwrite_database_id})")
    logger.info(f"   Directus: {settings.directus_url}")
    logger.info(f"   Snapshot cache TTL: {settings.dashboard_cache_ttl_seconds}s")
    if not settings.appwrite_api_key:
        logger.warning("   APPWRITE_API_KEY not set - Appwrite calls will be unauthenticated")
    logger.info("=" * 60)

    port = int(os.environ.get("PORT", 5000))
    app.run(debug=app.config.get("DEBUG", False), host="0.0.0.0", port=port)


if __name__ == "__main__":
    run_app()
