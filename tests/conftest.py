"""
Shared pytest fixtures for the LPMS test suite.

Provides:
    - app: Flask application (session-scoped), object store under a tmp dir
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - svc: the app's wired services (engine, gate, bulk, store, ...)
    - alice / bob / admin: directory users (Actor instances)
    - put_object: factory that stores bytes and returns the object id
    - make_reserve: ORM factory that inserts a record at any status
    - open_window / closed_window: window configuration around "now"
"""

import io
from datetime import datetime, timedelta, timezone

import pytest

from lpms import create_app
from lpms.models import db as _db
from lpms.models.reserve import ReserveProject, STATUS_DRAFT


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    application.config["OBJECT_STORE_ROOT"] = str(tmp_path_factory.mktemp("objects"))
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def svc():
    from lpms.services.registry import get_services
    return get_services()


# ── Users ────────────────────────────────────────────────────────────────


@pytest.fixture()
def alice(svc):
    svc.directory.upsert("alice", display_name="Alice")
    return svc.directory.get("alice")


@pytest.fixture()
def bob(svc):
    svc.directory.upsert("bob", display_name="Bob")
    return svc.directory.get("bob")


@pytest.fixture()
def admin(svc):
    svc.directory.upsert("root", is_admin=True, display_name="Administrator")
    return svc.directory.get("root")


# ── Objects & records ────────────────────────────────────────────────────


@pytest.fixture()
def put_object(svc):
    """Store some bytes and return the new object id."""

    def _put(data=b"\x89PNG fake image", file_name="site.png", content_type="image/png",
             created_by="alice"):
        return svc.store.put(io.BytesIO(data), file_name, content_type, created_by).id

    return _put


@pytest.fixture()
def make_reserve():
    """Insert a ReserveProject directly (bypasses lifecycle guards)."""

    def _make(name="Riverside depot", status=STATUS_DRAFT, created_by="alice", **fields):
        record = ReserveProject(name=name, status=status, created_by=created_by, **fields)
        _db.session.add(record)
        _db.session.commit()
        return record.id

    return _make


# ── Window configuration ─────────────────────────────────────────────────


@pytest.fixture()
def open_window(svc, admin):
    """A window covering the current moment."""
    now = datetime.now(timezone.utc)
    return svc.gate.set_windows(admin, [
        {"start_at": (now - timedelta(days=1)).isoformat(),
         "end_at": (now + timedelta(days=1)).isoformat()},
    ])


@pytest.fixture()
def closed_window(svc, admin):
    """A single window that ended yesterday."""
    now = datetime.now(timezone.utc)
    return svc.gate.set_windows(admin, [
        {"start_at": (now - timedelta(days=10)).isoformat(),
         "end_at": (now - timedelta(days=1)).isoformat()},
    ])
