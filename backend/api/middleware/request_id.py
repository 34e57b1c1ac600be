"""
Request ID middleware - Inject X-Request-ID for request correlation.

The id is stored on flask.g, echoed in the response header and attached to
log records through RequestIdFilter, so a dashboard rebuild's upstream
warnings can be traced back to the request that triggered it.
"""

import logging
import uuid
from flask import Flask, g, has_request_context, request


def setup_request_id_middleware(app: Flask) -> None:
    """
    Set up request ID middleware on Flask app.

    Args:
        app: Flask application instance
    """

    @app.before_request
    def inject_request_id():
        # Reuse the caller's id when provided
        g.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())

    @app.after_request
    def add_request_id_header(response):
        if hasattr(g, 'request_id'):
            response.headers['X-Request-ID'] = g.request_id
        return response


def get_request_id() -> str:
    """Current request id, or '-' outside a request (CLI, background work)."""
    if has_request_context() and hasattr(g, 'request_id'):
        return g.request_id
    return '-'


class RequestIdFilter(logging.Filter):
    """Adds `request_id` to every record (use %(request_id)s in formats)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True
