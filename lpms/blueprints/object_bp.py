"""
Object blueprint — upload and download the binary artifacts reserve projects
reference (site photos, CAD uploads).

Endpoints:
    POST /api/v1/objects                multipart upload, form field "file"
    GET  /api/v1/objects/<id>           download content
    GET  /api/v1/objects/<id>/meta      metadata only
"""

from flask import Blueprint, jsonify, request, send_file
from sqlalchemy.exc import SQLAlchemyError

from lpms.blueprints import current_user_name, services
from lpms.core.exceptions import PersistenceError
from lpms.utils.errors import E, api_error, register_service_error_handlers

object_bp = Blueprint("objects", __name__, url_prefix="/api/v1/objects")

register_service_error_handlers(object_bp)


@object_bp.route("", methods=["POST"])
def upload_object():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return api_error(E.VALIDATION_REQUIRED, "Multipart field 'file' is required")

    try:
        obj = services().store.put(
            upload.stream,
            upload.filename,
            upload.mimetype or None,
            current_user_name(),
        )
    except SQLAlchemyError as exc:
        raise PersistenceError("put_object", str(exc)) from exc
    return jsonify(obj.to_dict()), 201


@object_bp.route("/<object_id>", methods=["GET"])
def download_object(object_id):
    obj, path = services().store.open(object_id)
    return send_file(
        path,
        mimetype=obj.content_type or "application/octet-stream",
        as_attachment=True,
        download_name=obj.file_name,
    )


@object_bp.route("/<object_id>/meta", methods=["GET"])
def object_meta(object_id):
    obj, _path = services().store.open(object_id)
    return jsonify(obj.to_dict()), 200
