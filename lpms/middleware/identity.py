"""
Identity middleware — resolves the caller's user name into ``g.user_name``.

Authentication policy lives upstream; this layer only needs *who* is calling.

Modes (API_AUTH_ENABLED):
  true   Authorization: Bearer <jwt>  (HS256, ``sub`` = user name)
  false  X-User-Name header           (development / testing)

API routes other than the skip list answer 401 when no identity resolves.
"""

import jwt as pyjwt
from flask import g, request

from lpms.services.jwt_service import decode_access_token
from lpms.utils.errors import E, api_error

USER_HEADER = "X-User-Name"

# Paths that need no caller identity
SKIP_PREFIXES = (
    "/api/v1/health",
)


def _auth_enabled(app) -> bool:
    return str(app.config.get("API_AUTH_ENABLED", "false")).lower() == "true"


def init_identity(app):
    """Register the identity resolver as a before_request hook."""

    @app.before_request
    def _resolve_identity():
        g.user_name = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return None
        for prefix in SKIP_PREFIXES:
            if path.startswith(prefix):
                return None

        if _auth_enabled(app):
            auth_header = request.headers.get("Authorization", "")
            if not auth_header.startswith("Bearer "):
                return api_error(E.UNAUTHORIZED, "Bearer token required")
            try:
                payload = decode_access_token(auth_header[7:])
            except pyjwt.ExpiredSignatureError:
                return api_error(E.UNAUTHORIZED, "Token expired")
            except pyjwt.InvalidTokenError:
                return api_error(E.UNAUTHORIZED, "Invalid token")
            g.user_name = payload["sub"]
        else:
            g.user_name = (request.headers.get(USER_HEADER) or "").strip() or None

        if not g.user_name:
            return api_error(E.UNAUTHORIZED, f"Caller identity required ({USER_HEADER} header)")
        return None
