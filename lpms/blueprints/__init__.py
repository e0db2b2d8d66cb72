"""
LPMS — Reserve Project Lifecycle Service
Blueprint package: thin HTTP layer over lpms.services.

Blueprints parse and validate input, resolve the caller, call one service
method and return JSON. No db.session calls and no business rules here.
"""

from flask import g

from lpms.services.registry import get_services


def current_user_name() -> str:
    """Caller identity resolved by lpms.middleware.identity."""
    return g.user_name


def services():
    return get_services()
