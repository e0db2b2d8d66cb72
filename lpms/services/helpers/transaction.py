"""Transaction boundary for state-changing service calls.

Every lifecycle operation runs as exactly one database transaction:

    with atomic("refer", record_id=record_id):
        record = load_for_update(record_id)
        ...                                     # validate + mutate

On success the session commits and staged object deletions are purged.
On any exception the session rolls back, staged deletions are restored,
and ``SQLAlchemyError`` is re-raised as ``PersistenceError``. Service errors
(``LpmsError``) propagate unchanged.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from lpms.core.exceptions import PersistenceError
from lpms.models import db
from lpms.services.object_store import purge_staged, restore_staged

logger = logging.getLogger(__name__)


@contextmanager
def atomic(operation: str, **context):
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        restore_staged(db.session)
        logger.exception("Transaction failed operation=%s context=%s", operation, context)
        raise PersistenceError(operation, str(getattr(exc, "orig", None) or exc)) from exc
    except Exception:
        db.session.rollback()
        restore_staged(db.session)
        raise
    purge_staged(db.session)


@contextmanager
def reading(operation: str, **context):
    """Read-only counterpart of ``atomic``: no commit, same error translation."""
    try:
        yield db.session
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Query failed operation=%s context=%s", operation, context)
        raise PersistenceError(operation, str(getattr(exc, "orig", None) or exc)) from exc
