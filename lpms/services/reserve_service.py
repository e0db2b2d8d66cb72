"""
Reserve project lifecycle engine.

Owns the reserve-project state machine (RESERVE_TRANSITIONS):

    refer        draft       → entered_db
    submission   entered_db  → early_plan           (window-gated)
    out_storage  early_plan  → out_storage_inspect  (window-gated)

Rules:
  - Every state-changing call is one transaction (``atomic``): the row is
    read FOR UPDATE, the transition or patch is validated, side effects run,
    then the session commits. Any failure leaves the row untouched.
  - Artifact cleanup (ObjectRefTracker) happens inside that transaction and
    must succeed before commit.
  - The window gate is consulted at call time, never from a cached value.
  - Listing scope: administrators see every record, everyone else only
    records they created.

Usage:
    from lpms.services.registry import get_services

    engine = get_services().engine
    engine.refer("alice", 42)
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import func, select

from lpms.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    UnmarshalError,
    WindowClosedError,
)
from lpms.models import db
from lpms.models.reserve import (
    ReserveProject,
    STATUS_DRAFT,
    available_actions,
    iso_utc,
    validate_transition,
)
from lpms.services.helpers.transaction import atomic, reading
from lpms.services.object_refs import ObjectRefTracker
from lpms.services.reserve_params import (
    PageInfo,
    ReserveCreate,
    ReserveFilter,
    ReserveUpdate,
    SubmissionFlags,
)
from lpms.services.user_directory import UserDirectory
from lpms.services.window_gate import WindowGate

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _apply_filters(stmt, filters: ReserveFilter):
    if filters.name:
        stmt = stmt.where(ReserveProject.name.ilike(f"%{filters.name}%"))
    if filters.level:
        stmt = stmt.where(ReserveProject.level == filters.level)
    if filters.project_type:
        stmt = stmt.where(ReserveProject.project_type == filters.project_type)
    if filters.construct_subject:
        stmt = stmt.where(ReserveProject.construct_subject == filters.construct_subject)
    if filters.status:
        stmt = stmt.where(ReserveProject.status == filters.status)
    if filters.created_from:
        stmt = stmt.where(ReserveProject.created_at >= filters.created_from)
    if filters.created_to:
        stmt = stmt.where(ReserveProject.created_at <= filters.created_to)
    return stmt


class LifecycleEngine:
    def __init__(
        self,
        gate: WindowGate,
        tracker: ObjectRefTracker,
        directory: UserDirectory,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._gate = gate
        self._tracker = tracker
        self._directory = directory
        self._clock = clock

    # ── Internal helpers ────────────────────────────────────────────────────

    def _load_for_update(self, record_id: int) -> ReserveProject:
        record = db.session.execute(
            select(ReserveProject)
            .where(ReserveProject.id == record_id)
            .with_for_update()
        ).scalar_one_or_none()
        if record is None:
            raise NotFoundError("ReserveProject", record_id)
        return record

    @staticmethod
    def _detail(record: ReserveProject) -> dict:
        """Response shape for a single record, with invest_detail decoded."""
        payload = record.to_dict()
        raw = payload["invest_detail"]
        if raw:
            try:
                payload["invest_detail"] = json.loads(raw)
            except ValueError as exc:
                raise UnmarshalError(
                    f"Reserve project {record.id} has malformed invest_detail JSON: {exc}",
                    {"id": record.id, "field": "invest_detail"},
                ) from exc
        payload["available_actions"] = available_actions(record.status)
        return payload

    # ── CRUD ────────────────────────────────────────────────────────────────

    def create(self, actor: str, fields: ReserveCreate) -> dict:
        """Create a record in ``draft`` owned by ``actor``. Not window-gated."""
        with atomic("create_reserve", user_name=actor):
            self._tracker.ensure_exists(fields.artifact_refs())
            record = ReserveProject(
                **fields.column_values(),
                status=STATUS_DRAFT,
                created_by=actor,
                created_at=self._clock(),
            )
            db.session.add(record)
            db.session.flush()
            record_id = record.id

        logger.info(
            "Reserve project created id=%s",
            record_id,
            extra={"record_id": record_id, "user_name": actor, "action": "create"},
        )
        return self._detail(record)

    def get(self, record_id: int) -> dict:
        with reading("get_reserve", record_id=record_id):
            record = db.session.get(ReserveProject, record_id)
        if record is None:
            raise NotFoundError("ReserveProject", record_id)
        return self._detail(record)

    def list(self, actor: str, filters: ReserveFilter, page: PageInfo) -> dict:
        """Paginated list view, scoped by the actor's admin flag.

        Ordering is stable: created_at, then id as tie-break.
        """
        caller = self._directory.get(actor)

        stmt = _apply_filters(select(ReserveProject), filters)
        if not caller.is_admin:
            stmt = stmt.where(ReserveProject.created_by == caller.user_name)

        with reading("list_reserve", user_name=actor):
            total = db.session.execute(
                select(func.count()).select_from(stmt.order_by(None).subquery())
            ).scalar_one()
            rows = db.session.execute(
                stmt.order_by(ReserveProject.created_at, ReserveProject.id)
                .limit(page.page_size)
                .offset(page.offset)
            ).scalars().all()

        return {
            "items": [row.to_list_dict() for row in rows],
            "total": total,
            "page": page.page,
            "page_size": page.page_size,
        }

    def update(self, actor: str, record_id: int, patch: ReserveUpdate) -> dict:
        """Apply a partial update. Status never changes here.

        Replaced or cleared artifacts are deleted before the new values are
        written; if a delete fails the record keeps its old references.
        """
        with atomic("update_reserve", record_id=record_id, user_name=actor):
            record = self._load_for_update(record_id)

            new_refs = patch.artifact_refs()
            self._tracker.ensure_exists({
                slot: ref for slot, ref in new_refs.items() if ref != getattr(record, slot)
            }, record_id)
            self._tracker.reconcile(record, new_refs)

            for column, value in patch.changes().items():
                setattr(record, column, value)
            record.updated_by = actor
            record.updated_at = self._clock()

        logger.info(
            "Reserve project updated id=%s fields=%s",
            record_id,
            sorted(patch.present),
            extra={"record_id": record_id, "user_name": actor, "action": "update"},
        )
        return self._detail(record)

    def delete(self, actor: str, record_id: int) -> None:
        """Release every artifact, then remove the row, in one transaction."""
        with atomic("delete_reserve", record_id=record_id, user_name=actor):
            record = self._load_for_update(record_id)
            self._tracker.release_all(record)
            db.session.delete(record)

        logger.info(
            "Reserve project deleted id=%s",
            record_id,
            extra={"record_id": record_id, "user_name": actor, "action": "delete"},
        )

    # ── Transitions ─────────────────────────────────────────────────────────

    def refer(self, actor: str, record_id: int) -> dict:
        """draft → entered_db. Not window-gated."""
        return self._transition("refer", actor, record_id)

    def submission(self, actor: str, record_id: int, flags: SubmissionFlags | None) -> dict:
        """entered_db → early_plan. Window-gated.

        ``flags`` None leaves is_case_finish / is_research unchanged (bulk path).
        """
        return self._transition("submission", actor, record_id, flags)

    def out_storage(self, actor: str, record_id: int, flags: SubmissionFlags | None) -> dict:
        """early_plan → out_storage_inspect. Window-gated."""
        return self._transition("out_storage", actor, record_id, flags)

    def _transition(
        self,
        action: str,
        actor: str,
        record_id: int,
        flags: SubmissionFlags | None = None,
    ) -> dict:
        with atomic(action, record_id=record_id, user_name=actor):
            record = self._load_for_update(record_id)

            validation = validate_transition(record.status, action)
            if not validation["valid"]:
                logger.warning("Rejected %s id=%s status=%s", action, record_id, record.status,
                               extra={"record_id": record_id, "user_name": actor, "action": action})
                raise InvalidTransitionError(record_id, action, record.status, validation["reason"])

            now = self._clock()
            if validation["gated"] and not self._gate.is_open(now):
                logger.warning("Rejected %s id=%s: window closed", action, record_id,
                               extra={"record_id": record_id, "user_name": actor, "action": action})
                raise WindowClosedError(record_id, action, iso_utc(now))

            previous_status = record.status
            record.status = validation["to"]
            record.updated_by = actor
            record.updated_at = now
            if flags is not None:
                record.is_case_finish = flags.is_case_finish
                record.is_research = flags.is_research

        logger.info(
            "Reserve project %s id=%s %s → %s",
            action,
            record_id,
            previous_status,
            validation["to"],
            extra={"record_id": record_id, "user_name": actor, "action": action},
        )
        return {
            "id": record_id,
            "action": action,
            "previous_status": previous_status,
            "new_status": validation["to"],
        }
