"""
Object store — binary artifacts referenced by reserve projects.

LocalObjectStore keeps bytes on disk under OBJECT_STORE_ROOT and a
StoredObject metadata row per object. The row decides existence.

Deletion is staged so it can join the caller's database transaction:
  1. delete() renames the file to ``<path>.deleting`` and deletes the row
     in the current session (no commit);
  2. the ``atomic`` helper calls ``purge_staged`` after a successful commit,
     or ``restore_staged`` after a rollback, which renames files back.
A failed rename raises ObjectStoreError before anything is committed.

delete() is idempotent: an id with no row (already deleted, never stored)
returns False instead of raising.
"""

from __future__ import annotations

import hashlib
import logging
import os
import uuid
from abc import ABC, abstractmethod
from typing import BinaryIO

from flask import current_app

from lpms.core.exceptions import NotFoundError, ObjectStoreError
from lpms.models import db
from lpms.models.storage import StoredObject

logger = logging.getLogger(__name__)

_STAGED_KEY = "lpms.staged_object_deletions"
_TRASH_SUFFIX = ".deleting"
_CHUNK = 64 * 1024


class ObjectStore(ABC):
    """Collaborator contract used by ObjectRefTracker."""

    @abstractmethod
    def exists(self, object_id: str) -> bool: ...

    @abstractmethod
    def delete(self, object_id: str) -> bool:
        """Remove an object. Returns False when it was already absent."""

    @abstractmethod
    def put(self, stream: BinaryIO, file_name: str, content_type: str | None,
            created_by: str | None) -> StoredObject: ...

    @abstractmethod
    def open(self, object_id: str) -> tuple[StoredObject, str]: ...


class LocalObjectStore(ObjectStore):
    """Filesystem-backed store. ``root`` defaults to app.config["OBJECT_STORE_ROOT"]."""

    def __init__(self, root: str | None = None) -> None:
        self._root = root

    @property
    def root(self) -> str:
        return self._root or current_app.config["OBJECT_STORE_ROOT"]

    def _abs(self, storage_path: str) -> str:
        return os.path.join(self.root, storage_path)

    def exists(self, object_id: str) -> bool:
        return db.session.get(StoredObject, object_id) is not None

    def put(self, stream, file_name, content_type=None, created_by=None) -> StoredObject:
        """Write ``stream`` to disk and commit its metadata row."""
        object_id = uuid.uuid4().hex
        storage_path = os.path.join(object_id[:2], object_id)
        target = self._abs(storage_path)
        digest = hashlib.sha256()
        size = 0
        try:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with open(target, "wb") as fh:
                while True:
                    chunk = stream.read(_CHUNK)
                    if not chunk:
                        break
                    digest.update(chunk)
                    size += len(chunk)
                    fh.write(chunk)
        except OSError as exc:
            raise ObjectStoreError(object_id, f"write failed: {exc}") from exc

        obj = StoredObject(
            id=object_id,
            file_name=file_name,
            content_type=content_type,
            size=size,
            sha256=digest.hexdigest(),
            storage_path=storage_path,
            created_by=created_by,
        )
        db.session.add(obj)
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            _unlink_quietly(target)
            raise
        logger.info("Object stored object_id=%s size=%d", object_id, size,
                    extra={"user_name": created_by})
        return obj

    def open(self, object_id: str) -> tuple[StoredObject, str]:
        """Return (metadata, absolute path) for download."""
        obj = db.session.get(StoredObject, object_id)
        if obj is None:
            raise NotFoundError("StoredObject", object_id)
        path = self._abs(obj.storage_path)
        if not os.path.exists(path):
            raise ObjectStoreError(object_id, "content missing on disk")
        return obj, path

    def delete(self, object_id: str) -> bool:
        obj = db.session.get(StoredObject, object_id)
        if obj is None:
            logger.info("Object already absent object_id=%s", object_id)
            return False

        path = self._abs(obj.storage_path)
        trash = path + _TRASH_SUFFIX
        try:
            os.replace(path, trash)
        except FileNotFoundError:
            # Row without content: dropping the row is all that is left to do.
            logger.warning("Object content already missing object_id=%s", object_id)
            trash = None
        except OSError as exc:
            raise ObjectStoreError(object_id, f"delete failed: {exc}") from exc

        db.session.delete(obj)
        db.session.info.setdefault(_STAGED_KEY, []).append((object_id, path, trash))
        return True


# ── Transaction hooks (called by services.helpers.transaction.atomic) ─────────


def purge_staged(session) -> None:
    """Permanently remove content for deletions that were committed."""
    for object_id, _path, trash in session.info.pop(_STAGED_KEY, []):
        if trash:
            _unlink_quietly(trash)
        logger.info("Object deleted object_id=%s", object_id)


def restore_staged(session) -> None:
    """Put staged content back after the owning transaction rolled back."""
    for object_id, path, trash in reversed(session.info.pop(_STAGED_KEY, [])):
        if not trash:
            continue
        try:
            os.replace(trash, path)
        except OSError:
            logger.exception("Could not restore object content object_id=%s", object_id)


def _unlink_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.exception("Could not remove object file %s", path)
