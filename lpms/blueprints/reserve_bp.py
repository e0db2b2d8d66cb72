"""
Reserve project blueprint — lifecycle, bulk and analytics endpoints.

Endpoints:
    POST   /api/v1/reserve/projects                      create (status=draft)
    GET    /api/v1/reserve/projects                      list (owner-scoped unless admin)
    DELETE /api/v1/reserve/projects?ids=1,2,3            bulk delete (fail-fast)
    GET    /api/v1/reserve/projects/<id>                 detail
    PUT    /api/v1/reserve/projects/<id>                 partial update
    DELETE /api/v1/reserve/projects/<id>                 delete (+ artifact cleanup)
    PUT    /api/v1/reserve/projects/<id>/refer           draft → entered_db
    PUT    /api/v1/reserve/projects/<id>/submission      entered_db → early_plan (window-gated)
    PUT    /api/v1/reserve/projects/submission?ids=...   bulk submission (fail-fast)
    PUT    /api/v1/reserve/projects/<id>/out-storage     early_plan → out_storage_inspect (window-gated)
    GET    /api/v1/reserve/analysis?group_by=year        per-bucket status counts

Bulk endpoints stop at the first failing id and do not undo earlier ids;
the error body's ``details`` lists ``failed_id`` and ``completed_ids``.

Layer contract:
    - Blueprint: parse + validate input, call service, return JSON.
    - NO db.session calls here — all writes owned by the services.
"""

import logging

from flask import Blueprint, jsonify, request

from lpms.blueprints import current_user_name, services
from lpms.services import analysis_service
from lpms.services.reserve_params import (
    AnalysisFilter,
    PageInfo,
    ReserveCreate,
    ReserveFilter,
    ReserveUpdate,
    SubmissionFlags,
)
from lpms.utils.errors import E, api_error, register_service_error_handlers

logger = logging.getLogger(__name__)

reserve_bp = Blueprint("reserve", __name__, url_prefix="/api/v1/reserve")

register_service_error_handlers(reserve_bp)


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return None, api_error(E.VALIDATION_REQUIRED, "JSON body required")
    return data, None


# ── CRUD ──────────────────────────────────────────────────────────────────────


@reserve_bp.route("/projects", methods=["POST"])
def create_project():
    """Create a reserve project owned by the caller."""
    data, err = _json_body()
    if err:
        return err
    fields = ReserveCreate.from_payload(data)
    record = services().engine.create(current_user_name(), fields)
    return jsonify(record), 201


@reserve_bp.route("/projects", methods=["GET"])
def list_projects():
    """List reserve projects.

    Query params: name, level, project_type, construct_subject, status,
    created_from, created_to, page, page_size.
    """
    filters = ReserveFilter.from_args(request.args)
    page = PageInfo.from_args(request.args)
    return jsonify(services().engine.list(current_user_name(), filters, page)), 200


@reserve_bp.route("/projects", methods=["DELETE"])
def multi_delete_projects():
    """Delete several projects in order; stops at the first failure."""
    result = services().bulk.multi_delete(current_user_name(), request.args.get("ids"))
    return jsonify(result), 200


@reserve_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id: int):
    return jsonify(services().engine.get(project_id)), 200


@reserve_bp.route("/projects/<int:project_id>", methods=["PUT"])
def update_project(project_id: int):
    """Partial update: only the fields present in the body change."""
    data, err = _json_body()
    if err:
        return err
    patch = ReserveUpdate.from_payload(data)
    return jsonify(services().engine.update(current_user_name(), project_id, patch)), 200


@reserve_bp.route("/projects/<int:project_id>", methods=["DELETE"])
def delete_project(project_id: int):
    services().engine.delete(current_user_name(), project_id)
    return jsonify({"deleted": True, "id": project_id}), 200


# ── Lifecycle transitions ─────────────────────────────────────────────────────


@reserve_bp.route("/projects/<int:project_id>/refer", methods=["PUT"])
def refer_project(project_id: int):
    """Enter the project into the official register (draft → entered_db)."""
    return jsonify(services().engine.refer(current_user_name(), project_id)), 200


@reserve_bp.route("/projects/<int:project_id>/submission", methods=["PUT"])
def submit_project(project_id: int):
    """Early-plan submission. Body: {"is_case_finish": bool, "is_research": bool}."""
    flags = SubmissionFlags.from_payload(request.get_json(silent=True))
    return jsonify(services().engine.submission(current_user_name(), project_id, flags)), 200


@reserve_bp.route("/projects/submission", methods=["PUT"])
def multi_submit_projects():
    """Bulk early-plan submission. Flags in the body, when sent, apply to every id."""
    body = request.get_json(silent=True)
    flags = SubmissionFlags.from_payload(body) if body else None
    result = services().bulk.multi_submission(current_user_name(), request.args.get("ids"), flags)
    return jsonify(result), 200


@reserve_bp.route("/projects/<int:project_id>/out-storage", methods=["PUT"])
def out_storage_project(project_id: int):
    """Out-of-storage inspection. Body: {"is_case_finish": bool, "is_research": bool}."""
    flags = SubmissionFlags.from_payload(request.get_json(silent=True))
    return jsonify(services().engine.out_storage(current_user_name(), project_id, flags)), 200


# ── Analytics ─────────────────────────────────────────────────────────────────


@reserve_bp.route("/analysis", methods=["GET"])
def data_analysis():
    """Per-bucket status counts.

    Query params: group_by (required: year | month | level | project_type |
    construct_subject), level, project_type, construct_subject,
    created_from, created_to.
    """
    filters = AnalysisFilter.from_args(request.args)
    return jsonify({"items": analysis_service.data_analysis(filters)}), 200
