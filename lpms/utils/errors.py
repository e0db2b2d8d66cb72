"""Standardised API error responses.

Usage
-----
    from lpms.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Reserve project not found")
    return api_error(E.VALIDATION_REQUIRED, "name is required")

Blueprints that call into the service layer register
``register_service_error_handlers(bp)`` once, so every ``LpmsError``
raised below them renders through ``api_error`` with its own code.
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    INVALID_ARGUMENT = "ERR_INVALID_ARGUMENT"
    INVALID_WINDOW = "ERR_INVALID_WINDOW"

    # Identity – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"
    WINDOW_CLOSED = "ERR_WINDOW_CLOSED"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"

    # Server / collaborators – HTTP 5xx
    DATABASE = "ERR_DATABASE"
    UNMARSHAL = "ERR_UNMARSHAL"
    OBJECT_STORE = "ERR_OBJECT_STORE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.INVALID_ARGUMENT: 400,
    E.INVALID_WINDOW: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.WINDOW_CLOSED: 403,
    E.NOT_FOUND: 404,
    E.INVALID_TRANSITION: 409,
    E.DATABASE: 500,
    E.UNMARSHAL: 500,
    E.OBJECT_STORE: 502,
    E.INTERNAL: 500,
}


def default_status(code: str) -> int:
    return _DEFAULT_STATUS.get(code, 400)


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (failed id, current status, ...).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or default_status(code)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_service_error_handlers(bp) -> None:
    """Attach the LpmsError → JSON mapping and a 500 catch-all to a blueprint."""
    from lpms.core.exceptions import LpmsError

    @bp.errorhandler(LpmsError)
    def _handle_service_error(error: LpmsError):
        if error.status >= 500:
            logger.error("%s endpoint=%s: %s", type(error).__name__, request.endpoint, error)
        return api_error(error.code, str(error), status=error.status, details=error.details)

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error endpoint=%s", request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
