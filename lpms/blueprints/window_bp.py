"""
Window settings blueprint — read and replace the submission window configuration.

Endpoints:
    GET /api/v1/inspect/window/settings   configured windows + is_open now
    PUT /api/v1/inspect/window/setting    replace all windows (administrators only)

PUT body:
    {"windows": [{"start_at": "2026-03-01T00:00:00Z", "end_at": "2026-04-01T00:00:00Z"}, ...]}
"""

from flask import Blueprint, jsonify, request

from lpms.blueprints import current_user_name, services
from lpms.utils.errors import E, api_error, register_service_error_handlers

window_bp = Blueprint("window", __name__, url_prefix="/api/v1/inspect/window")

register_service_error_handlers(window_bp)


@window_bp.route("/settings", methods=["GET"])
def get_window_settings():
    return jsonify(services().gate.get_windows()), 200


@window_bp.route("/setting", methods=["PUT"])
def set_window_settings():
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "windows" not in data:
        return api_error(E.VALIDATION_REQUIRED, "'windows' is required")

    svc = services()
    actor = svc.directory.get(current_user_name())
    return jsonify(svc.gate.set_windows(actor, data["windows"])), 200
