"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in sample_tracker/__init__.py with no default limits; this module
applies granular limits per route category.

Usage:
    from sample_tracker.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import request as flask_request
from flask_limiter.util import get_remote_address

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def rate_limit_key():
    """Limit per acting profile when one is supplied, else per remote IP."""
    actor_id = flask_request.headers.get("X-User-Id")
    if actor_id:
        return f"actor:{actor_id}"
    return get_remote_address() or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits:
        - requests, templates:  60/minute  (mutation-heavy)
        - profiles:             200/minute (picker lookups)
        - health:               exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("requests", "templates"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, key_func=rate_limit_key)(bp)

    bp = app.blueprints.get("profiles")
    if bp:
        limiter.limit(READ_LIMIT, key_func=rate_limit_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: write=%s, read=%s", WRITE_LIMIT, READ_LIMIT)
