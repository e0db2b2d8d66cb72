"""
LPMS — Reserve Project Lifecycle Service
Flask Application Factory.

Usage:
    from lpms import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from lpms.config import config
from lpms.models import db
from lpms.middleware.logging_config import configure_logging
from lpms.middleware.timing import init_request_timing
from lpms.middleware.identity import init_identity
from lpms.middleware.diagnostics import run_startup_diagnostics
from lpms.middleware.rate_limiter import init_rate_limits

logger = logging.getLogger(__name__)

migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiated so ProductionConfig can refuse to start without its env vars.
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Request timing + caller identity ─────────────────────────────────
    # Must precede limiter.init_app: per-caller limits read g.user_name.
    init_request_timing(app)
    init_identity(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from lpms.models import auth as _auth_models           # noqa: F401
    from lpms.models import reserve as _reserve_models     # noqa: F401
    from lpms.models import storage as _storage_models     # noqa: F401
    from lpms.models import window as _window_models       # noqa: F401

    # ── Auto-create tables (safe for production — CREATE IF NOT EXISTS) ──
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Lifecycle services ───────────────────────────────────────────────
    from lpms.services.registry import init_services
    init_services(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from lpms.blueprints.reserve_bp import reserve_bp
    from lpms.blueprints.window_bp import window_bp
    from lpms.blueprints.object_bp import object_bp
    from lpms.blueprints.health_bp import health_bp

    app.register_blueprint(reserve_bp)
    app.register_blueprint(window_bp)
    app.register_blueprint(object_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("create-user")
    @click.argument("user_name")
    @click.option("--admin", is_flag=True, help="Grant the administrator flag.")
    @click.option("--display-name", default=None)
    def create_user_cmd(user_name, admin, display_name):
        """Create or update a user in the directory."""
        from lpms.services.registry import get_services
        get_services().directory.upsert(user_name, is_admin=admin, display_name=display_name)
        logger.info("User %s saved (admin=%s).", user_name, admin)

    @app.cli.command("issue-token")
    @click.argument("user_name")
    def issue_token_cmd(user_name):
        """Print an access token for USER_NAME (API_AUTH_ENABLED=true deployments)."""
        from lpms.services.jwt_service import generate_access_token
        click.echo(generate_access_token(user_name))

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    # ── Startup diagnostics ──────────────────────────────────────────────
    run_startup_diagnostics(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
