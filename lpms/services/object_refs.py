"""
Artifact reference tracking for reserve projects.

Keeps these true across create, update and delete:
  - a record never references an object that does not exist;
  - a replaced or removed reference never leaks its stored object;
  - an object is referenced by at most one record, so releasing it never
    strands another record.

Both operations are all-or-nothing from the caller's point of view: they run
inside the caller's ``atomic`` block, and an ObjectStoreError aborts the block
before the record is written (staged deletions are then restored).
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select

from lpms.core.exceptions import InvalidArgumentError
from lpms.models import db
from lpms.models.reserve import ARTIFACT_SLOTS, ReserveProject
from lpms.services.object_store import ObjectStore

logger = logging.getLogger(__name__)


class ObjectRefTracker:
    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    def ensure_exists(self, refs: dict, record_id: int | None = None) -> None:
        """Reject new references that point at no stored object, or at an
        object another record already holds.

        Args:
            refs:      Slot → reference, only for the references being set.
            record_id: The record being written; None while creating.
        """
        for slot, ref in refs.items():
            if not ref:
                continue
            if not self._store.exists(ref):
                raise InvalidArgumentError(
                    f"{slot} references unknown object {ref}",
                    {"slot": slot, "object_id": ref},
                )
            holder = self._holder_of(ref, record_id)
            if holder is not None:
                raise InvalidArgumentError(
                    f"{slot}: object {ref} is already referenced by reserve project {holder}",
                    {"slot": slot, "object_id": ref, "held_by": holder},
                )

    @staticmethod
    def _holder_of(ref: str, record_id: int | None) -> int | None:
        stmt = select(ReserveProject.id).where(
            or_(ReserveProject.site_photo == ref, ReserveProject.upload_cad_id == ref)
        )
        if record_id is not None:
            stmt = stmt.where(ReserveProject.id != record_id)
        return db.session.execute(stmt.limit(1)).scalar_one_or_none()

    def reconcile(self, record: ReserveProject, new_refs: dict) -> list[str]:
        """Delete objects whose slot is being replaced or cleared.

        Args:
            record:   Record as currently persisted.
            new_refs: Slot → new reference, only for slots the update touches.
                      ``None`` or ``""`` clears the slot.

        Returns:
            Ids of the objects deleted (already-absent ones included).

        Raises:
            ObjectStoreError: A delete failed; the caller must not persist.
        """
        final = {
            slot: (new_refs[slot] or None) if slot in new_refs else getattr(record, slot)
            for slot in ARTIFACT_SLOTS
        }
        still_referenced = {ref for ref in final.values() if ref}

        released = []
        for slot in ARTIFACT_SLOTS:
            if slot not in new_refs:
                continue
            old_ref = getattr(record, slot)
            # An object moved to another slot stays alive.
            if old_ref and old_ref not in still_referenced and old_ref not in released:
                self._store.delete(old_ref)
                released.append(old_ref)
        if released:
            logger.info("Artifact references replaced record_id=%s objects=%s", record.id, released)
        return released

    def release_all(self, record: ReserveProject) -> list[str]:
        """Delete every object a record being destroyed still references."""
        released = []
        for slot in ARTIFACT_SLOTS:
            ref = getattr(record, slot)
            if ref and ref not in released:
                self._store.delete(ref)
                released.append(ref)
        if released:
            logger.info("Artifact references released record_id=%s objects=%s", record.id, released)
        return released
