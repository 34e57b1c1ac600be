"""
Error envelope middleware - Standardize all error responses.

Provides consistent error response format:
{
    "error": {
        "code": "UPSTREAM_ERROR",
        "message": "Appwrite returned HTTP 503",
        "requestId": "uuid"
    }
}
"""

import logging
from flask import Flask, jsonify, g
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from services.upstream import UpstreamError


logger = logging.getLogger('api.middleware.error')


def setup_error_handlers(app: Flask) -> None:
    """
    Set up standardized error handlers on Flask app.

    Handles:
    - Invalid query params (pydantic ValidationError) -> 400
    - Upstream failures (UpstreamError) -> 502
    - HTTP exceptions (404, 405, etc.)
    - Unhandled Python exceptions -> 500

    Args:
        app: Flask application instance
    """

    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg"),
            }
            for err in error.errors()
        ]
        return make_error_response(
            "INVALID_PARAMS",
            "Invalid query parameters",
            details={"errors": details},
        )

    @app.errorhandler(UpstreamError)
    def handle_upstream_error(error):
        logger.error(
            f"Upstream failure: {error}",
            extra={
                "event": "upstream_error",
                "request_id": getattr(g, 'request_id', None),
                "endpoint": error.endpoint,
                "status": error.status_code,
            }
        )
        return make_error_response(
            "UPSTREAM_ERROR",
            str(error),
            details={"endpoint": error.endpoint, "status": error.status_code},
        )

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        """Handle Flask/Werkzeug HTTP exceptions."""
        # "Not Found" -> "NOT_FOUND"
        code = error.name.upper().replace(' ', '_')
        return make_error_response(code, error.description, status_code=error.code)

    @app.errorhandler(Exception)
    def handle_generic_error(error):
        """Handle unhandled Python exceptions."""
        request_id = getattr(g, 'request_id', None)

        # Log the full exception
        logger.exception(
            f"Unhandled error: {error}",
            extra={
                "event": "unhandled_error",
                "request_id": request_id,
                "error_type": type(error).__name__,
            }
        )
        return make_error_response("INTERNAL_ERROR", "An unexpected error occurred")


# Error codes reference
ERROR_CODES = {
    # Client errors (4xx)
    "BAD_REQUEST": 400,
    "NOT_FOUND": 404,
    "METHOD_NOT_ALLOWED": 405,
    "INVALID_PARAMS": 400,

    # Server errors (5xx)
    "INTERNAL_ERROR": 500,
    "UPSTREAM_ERROR": 502,
    "SERVICE_UNAVAILABLE": 503,
}


def make_error_response(
    code: str,
    message: str,
    status_code: int = None,
    details: dict = None,
):
    """
    Create a standardized error response.

    Args:
        code: Error code (e.g., "INVALID_PARAMS")
        message: Human-readable error message
        status_code: HTTP status code (defaults based on error code)
        details: Optional additional details dict

    Returns:
        Tuple of (response, status_code)
    """
    request_id = getattr(g, 'request_id', None)

    if status_code is None:
        status_code = ERROR_CODES.get(code, 500)

    error = {
        "error": {
            "code": code,
            "message": message,
            "requestId": request_id,
        }
    }
    if details:
        error["error"]["details"] = details

    response = jsonify(error)
    if request_id:
        response.headers['X-Request-ID'] = request_id

    return response, status_code
