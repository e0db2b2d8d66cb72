"""
Startup diagnostics — runs once when the Flask app starts.

Checks critical dependencies and logs a summary banner.
"""

import logging
import os
import sys

from flask import Flask

from lpms.models import db

logger = logging.getLogger(__name__)


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return  # skip during tests for speed

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        # ── Database connectivity ────────────────────────────────────
        db_status = "ok"
        db_uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
        db_type = "PostgreSQL" if "postgresql" in db_uri else "SQLite" if "sqlite" in db_uri else "unknown"
        try:
            db.session.execute(db.text("SELECT 1"))
        except Exception as exc:
            db_status = f"FAILED ({exc})"
            issues.append(f"Database unreachable: {exc}")

        # ── Table count ──────────────────────────────────────────────
        try:
            from sqlalchemy import inspect as sa_inspect
            table_count = len(sa_inspect(db.engine).get_table_names())
            if table_count == 0:
                issues.append("No tables found — run 'flask db upgrade'")
        except Exception:
            table_count = "?"

        # ── Object store ─────────────────────────────────────────────
        store_root = app.config.get("OBJECT_STORE_ROOT", "")
        store_status = "ok"
        try:
            os.makedirs(store_root, exist_ok=True)
            if not os.access(store_root, os.W_OK):
                store_status = "read-only"
                issues.append(f"Object store root is not writable: {store_root}")
        except OSError as exc:
            store_status = f"FAILED ({exc})"
            issues.append(f"Object store root unavailable: {exc}")

        db.session.remove()

    logger.info(
        "Startup: python=%s db=%s(%s) tables=%s object_store=%s(%s) auth=%s",
        py, db_type, db_status, table_count, store_root, store_status,
        app.config.get("API_AUTH_ENABLED"),
    )
    for issue in issues:
        logger.warning("Startup issue: %s", issue)
