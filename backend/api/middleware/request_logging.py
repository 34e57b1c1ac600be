"""
Request logging middleware - per-request timing for /api routes.

Every /api request is logged at DEBUG; requests slower than the threshold
(dashboard rebuilds that page through whole collections) are logged at
WARNING. Path prefixes in the watchlist are always logged at INFO.
"""

import logging
import os
import time
from typing import List

from flask import Flask, g, request


logger = logging.getLogger("api.request")

DEFAULT_SLOW_REQUEST_MS = 5000


def _parse_watchlist(raw: str) -> List[str]:
    if not raw:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


def _log_level(path: str, duration_ms: float, watchlist: List[str], slow_ms: float) -> int:
    if duration_ms >= slow_ms:
        return logging.WARNING
    if any(path.startswith(prefix) for prefix in watchlist):
        return logging.INFO
    return logging.DEBUG


def setup_request_logging_middleware(app: Flask) -> None:
    """
    Set up request logging middleware on Flask app.

    Env vars:
      - REQUEST_LOG_ENABLED (default: true)
      - REQUEST_LOG_SLOW_MS (default: 5000)
      - REQUEST_LOG_ENDPOINTS (comma-separated path prefixes to always log)
    """
    enabled = os.environ.get("REQUEST_LOG_ENABLED", "true").lower() == "true"
    try:
        slow_ms = float(os.environ.get("REQUEST_LOG_SLOW_MS", DEFAULT_SLOW_REQUEST_MS))
    except ValueError:
        slow_ms = DEFAULT_SLOW_REQUEST_MS
    watchlist = _parse_watchlist(os.environ.get("REQUEST_LOG_ENDPOINTS", ""))

    if not enabled:
        return

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()

    @app.after_request
    def _log_request(response):
        path = request.path
        if not path.startswith("/api") or not hasattr(g, "request_start"):
            return response

        duration_ms = round((time.perf_counter() - g.request_start) * 1000, 2)
        logger.log(
            _log_level(path, duration_ms, watchlist, slow_ms),
            "api_request path=%s method=%s status=%s duration_ms=%s request_id=%s",
            path,
            request.method,
            response.status_code,
            duration_ms,
            getattr(g, "request_id", None),
        )
        return response
