"""
API package - HTTP plumbing shared by all blueprints.

Global middleware lives in api.middleware (request_id, error_envelope,
request_logging).
"""
