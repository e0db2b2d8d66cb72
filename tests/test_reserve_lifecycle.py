"""
Lifecycle engine tests — CRUD, state machine and window gating at service level.

State machine (RESERVE_TRANSITIONS):
    refer        draft       -> entered_db
    submission   entered_db  -> early_plan           (window-gated)
    out_storage  early_plan  -> out_storage_inspect  (window-gated, terminal)

Every rejected call must leave the record exactly as it was.
"""

from datetime import datetime, timezone

import pytest

from lpms.core.exceptions import (
    InvalidArgumentError,
    InvalidTransitionError,
    NotFoundError,
    UnmarshalError,
    WindowClosedError,
)
from lpms.models.reserve import (
    RESERVE_STATUSES,
    RESERVE_TRANSITIONS,
    STATUS_DRAFT,
    STATUS_EARLY_PLAN,
    STATUS_ENTERED_DB,
    STATUS_OUT_STORAGE_INSPECT,
    available_actions,
    validate_transition,
)
from lpms.services.reserve_params import (
    PageInfo,
    ReserveCreate,
    ReserveFilter,
    ReserveUpdate,
    SubmissionFlags,
)
from lpms.services.reserve_service import LifecycleEngine

ACTIONS = ("refer", "submission", "out_storage")


def _call(engine, action, actor, record_id):
    if action == "refer":
        return engine.refer(actor, record_id)
    return getattr(engine, action)(actor, record_id, None)


# ═════════════════════════════════════════════════════════════════════════════
# Transition table
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitionTable:
    def test_every_edge_moves_one_step_forward(self):
        for rule in RESERVE_TRANSITIONS.values():
            assert RESERVE_STATUSES.index(rule["to"]) == RESERVE_STATUSES.index(rule["from"]) + 1

    def test_only_submission_and_out_storage_are_gated(self):
        gated = {a for a, rule in RESERVE_TRANSITIONS.items() if rule["gated"]}
        assert gated == {"submission", "out_storage"}

    def test_validate_transition_rejects_skips(self):
        result = validate_transition(STATUS_DRAFT, "out_storage")
        assert result["valid"] is False
        assert "early_plan" in result["reason"]

    def test_validate_transition_unknown_action(self):
        result = validate_transition(STATUS_DRAFT, "approve")
        assert result["valid"] is False
        assert result["reason"] == "Unknown action: approve"

    def test_available_actions(self):
        assert available_actions(STATUS_DRAFT) == ["refer"]
        assert available_actions(STATUS_ENTERED_DB) == ["submission"]
        assert available_actions(STATUS_EARLY_PLAN) == ["out_storage"]
        assert available_actions(STATUS_OUT_STORAGE_INSPECT) == []


# ═════════════════════════════════════════════════════════════════════════════
# CRUD
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateAndGet:
    def test_create_starts_in_draft(self, svc, alice):
        record = svc.engine.create("alice", ReserveCreate.from_payload({
            "name": "North reservoir",
            "level": "provincial",
            "invest_detail": {"total": 1200, "items": [{"kind": "land", "amount": 800}]},
        }))
        assert record["status"] == STATUS_DRAFT
        assert record["created_by"] == "alice"
        assert record["available_actions"] == ["refer"]
        assert record["invest_detail"]["total"] == 1200
        assert record["is_case_finish"] is False

    def test_create_rejects_status(self):
        with pytest.raises(InvalidArgumentError):
            ReserveCreate.from_payload({"name": "X", "status": STATUS_EARLY_PLAN})

    def test_create_requires_name(self):
        with pytest.raises(InvalidArgumentError):
            ReserveCreate.from_payload({"level": "municipal"})

    def test_create_rejects_unknown_artifact(self, svc):
        with pytest.raises(InvalidArgumentError) as exc:
            svc.engine.create("alice", ReserveCreate.from_payload({
                "name": "X", "site_photo": "does-not-exist",
            }))
        assert exc.value.details["slot"] == "site_photo"

    def test_create_with_stored_artifact(self, svc, put_object):
        photo = put_object()
        record = svc.engine.create("alice", ReserveCreate.from_payload({
            "name": "X", "site_photo": photo,
        }))
        assert record["site_photo"] == photo

    def test_get_unknown_id(self, svc):
        with pytest.raises(NotFoundError):
            svc.engine.get(9999)

    def test_get_malformed_invest_detail(self, svc, make_reserve):
        rid = make_reserve(invest_detail="{not json")
        with pytest.raises(UnmarshalError) as exc:
            svc.engine.get(rid)
        assert exc.value.details["id"] == rid


class TestUpdate:
    def test_partial_update_touches_only_sent_fields(self, svc, make_reserve):
        rid = make_reserve(level="municipal", contact="Ms. Li")
        record = svc.engine.update("bob", rid, ReserveUpdate.from_payload({"contact": "Mr. Wang"}))
        assert record["contact"] == "Mr. Wang"
        assert record["level"] == "municipal"
        assert record["name"] == "Riverside depot"
        assert record["updated_by"] == "bob"

    def test_present_none_clears_field(self, svc, make_reserve):
        rid = make_reserve(address="12 Dock Road")
        record = svc.engine.update("alice", rid, ReserveUpdate.from_payload({"address": None}))
        assert record["address"] is None

    def test_update_never_changes_status(self):
        with pytest.raises(InvalidArgumentError):
            ReserveUpdate.from_payload({"status": STATUS_OUT_STORAGE_INSPECT})

    def test_update_rejects_unknown_fields(self):
        with pytest.raises(InvalidArgumentError) as exc:
            ReserveUpdate.from_payload({"created_by": "mallory", "colour": "red"})
        assert exc.value.details["fields"] == ["colour", "created_by"]

    def test_update_unknown_id(self, svc):
        with pytest.raises(NotFoundError):
            svc.engine.update("alice", 404, ReserveUpdate.from_payload({"name": "Y"}))

    def test_update_invest_detail_round_trips(self, svc, make_reserve):
        rid = make_reserve()
        record = svc.engine.update("alice", rid, ReserveUpdate.from_payload({
            "invest_detail": [{"year": 2026, "amount": 10}],
        }))
        assert record["invest_detail"] == [{"year": 2026, "amount": 10}]


class TestDelete:
    def test_delete_removes_record(self, svc, make_reserve):
        rid = make_reserve()
        svc.engine.delete("alice", rid)
        with pytest.raises(NotFoundError):
            svc.engine.get(rid)

    def test_delete_unknown_id(self, svc):
        with pytest.raises(NotFoundError):
            svc.engine.delete("alice", 12345)

    def test_delete_is_allowed_in_any_status(self, svc, make_reserve):
        rid = make_reserve(status=STATUS_OUT_STORAGE_INSPECT)
        svc.engine.delete("alice", rid)
        with pytest.raises(NotFoundError):
            svc.engine.get(rid)


class TestList:
    @pytest.fixture()
    def records(self, make_reserve):
        return {
            "a1": make_reserve(name="Alpha yard", created_by="alice", level="municipal"),
            "a2": make_reserve(name="Beta yard", created_by="alice", status=STATUS_ENTERED_DB),
            "b1": make_reserve(name="Gamma yard", created_by="bob", level="municipal"),
        }

    def test_non_admin_sees_only_own_records(self, svc, alice, records):
        result = svc.engine.list("alice", ReserveFilter(), PageInfo())
        assert result["total"] == 2
        assert {r["created_by"] for r in result["items"]} == {"alice"}

    def test_admin_sees_all_records(self, svc, admin, records):
        result = svc.engine.list(admin.user_name, ReserveFilter(), PageInfo())
        assert result["total"] == 3

    def test_user_with_no_records(self, svc, bob, make_reserve):
        make_reserve(created_by="alice")
        result = svc.engine.list("bob", ReserveFilter(), PageInfo())
        assert result == {"items": [], "total": 0, "page": 1, "page_size": 20}

    def test_unknown_caller(self, svc, records):
        with pytest.raises(NotFoundError):
            svc.engine.list("mallory", ReserveFilter(), PageInfo())

    def test_filters(self, svc, admin, records):
        result = svc.engine.list(admin.user_name, ReserveFilter(level="municipal"), PageInfo())
        assert {r["id"] for r in result["items"]} == {records["a1"], records["b1"]}

        result = svc.engine.list(admin.user_name, ReserveFilter(status=STATUS_ENTERED_DB), PageInfo())
        assert [r["id"] for r in result["items"]] == [records["a2"]]

        result = svc.engine.list(admin.user_name, ReserveFilter(name="gamma"), PageInfo())
        assert [r["id"] for r in result["items"]] == [records["b1"]]

    def test_pagination_is_stable(self, svc, admin, records):
        first = svc.engine.list(admin.user_name, ReserveFilter(), PageInfo(page=1, page_size=2))
        second = svc.engine.list(admin.user_name, ReserveFilter(), PageInfo(page=2, page_size=2))
        assert first["total"] == second["total"] == 3
        ids = [r["id"] for r in first["items"]] + [r["id"] for r in second["items"]]
        assert ids == sorted(records.values())

    def test_page_size_bounds(self):
        with pytest.raises(InvalidArgumentError):
            PageInfo.from_args({"page_size": "101"})
        with pytest.raises(InvalidArgumentError):
            PageInfo.from_args({"page": "0"})

    def test_bad_status_filter(self):
        with pytest.raises(InvalidArgumentError):
            ReserveFilter.from_args({"status": "archived"})


# ═════════════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitions:
    def test_full_forward_path(self, svc, make_reserve, open_window):
        rid = make_reserve()
        r1 = svc.engine.refer("alice", rid)
        assert r1 == {"id": rid, "action": "refer",
                      "previous_status": STATUS_DRAFT, "new_status": STATUS_ENTERED_DB}
        r2 = svc.engine.submission("alice", rid, SubmissionFlags(is_case_finish=True))
        assert r2["new_status"] == STATUS_EARLY_PLAN
        r3 = svc.engine.out_storage("alice", rid, SubmissionFlags(is_research=True))
        assert r3["new_status"] == STATUS_OUT_STORAGE_INSPECT

        record = svc.engine.get(rid)
        assert record["status"] == STATUS_OUT_STORAGE_INSPECT
        assert record["is_case_finish"] is False
        assert record["is_research"] is True
        assert record["available_actions"] == []

    def test_submission_on_draft_is_rejected(self, svc, make_reserve, open_window):
        rid = make_reserve()
        with pytest.raises(InvalidTransitionError) as exc:
            svc.engine.submission("alice", rid, None)
        assert exc.value.current_status == STATUS_DRAFT
        assert svc.engine.get(rid)["status"] == STATUS_DRAFT

    @pytest.mark.parametrize("status", RESERVE_STATUSES)
    def test_only_one_action_is_valid_per_status(self, svc, make_reserve, open_window, status):
        for action in ACTIONS:
            rid = make_reserve(status=status)
            allowed = RESERVE_TRANSITIONS[action]["from"] == status
            if allowed:
                result = _call(svc.engine, action, "alice", rid)
                assert result["new_status"] == RESERVE_TRANSITIONS[action]["to"]
            else:
                with pytest.raises(InvalidTransitionError):
                    _call(svc.engine, action, "alice", rid)
                assert svc.engine.get(rid)["status"] == status

    def test_terminal_state_has_no_exit(self, svc, make_reserve, open_window):
        rid = make_reserve(status=STATUS_OUT_STORAGE_INSPECT)
        for action in ACTIONS:
            with pytest.raises(InvalidTransitionError):
                _call(svc.engine, action, "alice", rid)

    def test_transition_unknown_id(self, svc):
        with pytest.raises(NotFoundError):
            svc.engine.refer("alice", 777)

    def test_refer_is_not_gated(self, svc, make_reserve):
        rid = make_reserve()
        assert svc.engine.refer("alice", rid)["new_status"] == STATUS_ENTERED_DB

    def test_submission_without_any_window(self, svc, make_reserve):
        rid = make_reserve(status=STATUS_ENTERED_DB)
        with pytest.raises(WindowClosedError):
            svc.engine.submission("alice", rid, SubmissionFlags(is_case_finish=True))
        record = svc.engine.get(rid)
        assert record["status"] == STATUS_ENTERED_DB
        assert record["is_case_finish"] is False

    def test_out_storage_with_closed_window(self, svc, make_reserve, closed_window):
        rid = make_reserve(status=STATUS_EARLY_PLAN)
        with pytest.raises(WindowClosedError) as exc:
            svc.engine.out_storage("alice", rid, None)
        assert exc.value.details["action"] == "out_storage"
        assert svc.engine.get(rid)["status"] == STATUS_EARLY_PLAN

    def test_invalid_transition_checked_before_window(self, svc, make_reserve):
        rid = make_reserve()
        with pytest.raises(InvalidTransitionError):
            svc.engine.out_storage("alice", rid, None)

    def test_flags_none_keeps_existing_flags(self, svc, make_reserve, open_window):
        rid = make_reserve(status=STATUS_ENTERED_DB, is_case_finish=True, is_research=True)
        svc.engine.submission("alice", rid, None)
        record = svc.engine.get(rid)
        assert record["is_case_finish"] is True
        assert record["is_research"] is True

    def test_transition_records_provenance(self, svc, make_reserve):
        rid = make_reserve()
        svc.engine.refer("bob", rid)
        record = svc.engine.get(rid)
        assert record["updated_by"] == "bob"
        assert record["updated_at"] is not None


class TestGateAtFixedClock:
    """The engine's clock decides which moment the gate is asked about."""

    @pytest.fixture()
    def march(self, svc, admin):
        svc.gate.set_windows(admin, [
            {"start_at": "2026-03-01T00:00:00Z", "end_at": "2026-04-01T00:00:00Z"},
        ])

    def _engine_at(self, svc, moment):
        return LifecycleEngine(svc.gate, svc.tracker, svc.directory, clock=lambda: moment)

    def test_open_at_window_start(self, svc, make_reserve, march):
        engine = self._engine_at(svc, datetime(2026, 3, 1, tzinfo=timezone.utc))
        rid = make_reserve(status=STATUS_ENTERED_DB)
        assert engine.submission("alice", rid, None)["new_status"] == STATUS_EARLY_PLAN

    def test_closed_at_window_end(self, svc, make_reserve, march):
        engine = self._engine_at(svc, datetime(2026, 4, 1, tzinfo=timezone.utc))
        rid = make_reserve(status=STATUS_ENTERED_DB)
        with pytest.raises(WindowClosedError) as exc:
            engine.submission("alice", rid, None)
        assert exc.value.details["now"] == "2026-04-01T00:00:00+00:00"

    def test_closed_before_window(self, svc, make_reserve, march):
        engine = self._engine_at(svc, datetime(2026, 2, 28, 23, 59, tzinfo=timezone.utc))
        rid = make_reserve(status=STATUS_EARLY_PLAN)
        with pytest.raises(WindowClosedError):
            engine.out_storage("alice", rid, None)
