"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — simple 200 for load balancers
    GET /api/v1/health/live   — dependency status (database, object store)
"""

import logging
import os
import time

from flask import Blueprint, current_app, jsonify

from lpms.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok", "app": "LPMS"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    # ── Object store ─────────────────────────────────────────────────
    root = current_app.config.get("OBJECT_STORE_ROOT", "")
    if root and os.path.isdir(root) and os.access(root, os.W_OK):
        checks["object_store"] = {"status": "ok"}
    else:
        checks["object_store"] = {"status": "error", "detail": f"not writable: {root}"}
        overall = False

    return jsonify({"status": "ok" if overall else "degraded", "checks": checks}), 200 if overall else 503
