"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in lpms/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from lpms.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)


def rate_limit_key():
    """Limit per caller identity when known, else per remote IP."""
    user_name = getattr(g, "user_name", None)
    if user_name:
        return f"user:{user_name}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per caller):
        - Reserve lifecycle + windows: 120/minute
        - Object uploads / downloads:   60/minute
        - Health check:                 exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("reserve", "window"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("120/minute", key_func=rate_limit_key)(bp)

    bp = app.blueprints.get("objects")
    if bp:
        limiter.limit("60/minute", key_func=rate_limit_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — reserve/window: 120/min, objects: 60/min")
