"""
LPMS — Reserve Project Lifecycle Service
Reserve project domain model.

Lifecycle states (strictly forward, no skipping):
    draft → entered_db → early_plan → out_storage_inspect

    draft                 created by its owner, editable
    entered_db            referred into the official project register
    early_plan            early planning submitted      (window-gated)
    out_storage_inspect   out-of-storage inspection     (window-gated, terminal)

Artifact slots (site_photo, upload_cad_id) hold ids of StoredObject rows.
A record owns at most one live reference per slot.
"""

from datetime import datetime, timezone

from lpms.models import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_utc(value: datetime | None) -> str | None:
    """Render a datetime as ISO-8601 UTC. Naive values are read as UTC (SQLite drops tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


# ── Constants ────────────────────────────────────────────────────────────────

STATUS_DRAFT = "draft"
STATUS_ENTERED_DB = "entered_db"
STATUS_EARLY_PLAN = "early_plan"
STATUS_OUT_STORAGE_INSPECT = "out_storage_inspect"

# Lifecycle order, draft first.
RESERVE_STATUSES = (
    STATUS_DRAFT,
    STATUS_ENTERED_DB,
    STATUS_EARLY_PLAN,
    STATUS_OUT_STORAGE_INSPECT,
)

RESERVE_TRANSITIONS = {
    "refer": {"from": STATUS_DRAFT, "to": STATUS_ENTERED_DB, "gated": False},
    "submission": {"from": STATUS_ENTERED_DB, "to": STATUS_EARLY_PLAN, "gated": True},
    "out_storage": {"from": STATUS_EARLY_PLAN, "to": STATUS_OUT_STORAGE_INSPECT, "gated": True},
}

ARTIFACT_SLOTS = ("site_photo", "upload_cad_id")

# Fields a ReserveUpdate may touch. Status and provenance are excluded.
MUTABLE_FIELDS = (
    "name",
    "level",
    "project_type",
    "construct_subject",
    "address",
    "contact",
    "phone",
    "description",
    "invest_detail",
) + ARTIFACT_SLOTS


def validate_transition(current_status: str, action: str) -> dict:
    """
    Check whether ``action`` may run from ``current_status``.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "gated": bool, "reason": str|None}
    """
    rule = RESERVE_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": current_status, "to": None, "gated": False,
                "reason": f"Unknown action: {action}"}

    if current_status != rule["from"]:
        return {"valid": False, "from": current_status, "to": rule["to"], "gated": rule["gated"],
                "reason": f"'{action}' requires status '{rule['from']}'"}

    return {"valid": True, "from": current_status, "to": rule["to"], "gated": rule["gated"],
            "reason": None}


def available_actions(current_status: str) -> list[str]:
    """Transition actions valid from the given status."""
    return [action for action, rule in RESERVE_TRANSITIONS.items() if rule["from"] == current_status]


class ReserveProject(db.Model):
    """A reservation/project record tracked through the approval workflow."""

    __tablename__ = "reserve_projects"

    id = db.Column(db.Integer, primary_key=True)

    # Descriptive attributes
    name = db.Column(db.String(200), nullable=False)
    level = db.Column(db.String(100), nullable=True, comment="Project level (national | provincial | municipal ...)")
    project_type = db.Column(db.String(100), nullable=True)
    construct_subject = db.Column(db.String(100), nullable=True, comment="Construction subject / owner unit")
    address = db.Column(db.String(300), nullable=True)
    contact = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    description = db.Column(db.Text, nullable=True)
    invest_detail = db.Column(
        db.Text,
        nullable=True,
        comment="JSON-encoded investment breakdown; decoded when the record is read",
    )

    # Lifecycle
    status = db.Column(
        db.String(30),
        nullable=False,
        default=STATUS_DRAFT,
        index=True,
        comment="draft | entered_db | early_plan | out_storage_inspect",
    )
    is_case_finish = db.Column(db.Boolean, nullable=False, default=False)
    is_research = db.Column(db.Boolean, nullable=False, default=False)

    # Artifact references → stored_objects.id
    site_photo = db.Column(db.String(64), nullable=True)
    upload_cad_id = db.Column(db.String(64), nullable=True)

    # Provenance
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    created_by = db.Column(db.String(100), nullable=False, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.String(100), nullable=True)

    __table_args__ = (
        db.Index("ix_reserve_projects_created", "created_at", "id"),
        db.Index("ix_reserve_projects_owner_created", "created_by", "created_at"),
    )

    def to_list_dict(self) -> dict:
        """Compact row used by the list view."""
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "project_type": self.project_type,
            "construct_subject": self.construct_subject,
            "status": self.status,
            "created_at": iso_utc(self.created_at),
            "created_by": self.created_by,
        }

    def to_dict(self) -> dict:
        """Full row. ``invest_detail`` stays encoded; the service decodes it."""
        return {
            **self.to_list_dict(),
            "address": self.address,
            "contact": self.contact,
            "phone": self.phone,
            "description": self.description,
            "invest_detail": self.invest_detail,
            "is_case_finish": self.is_case_finish,
            "is_research": self.is_research,
            "site_photo": self.site_photo,
            "upload_cad_id": self.upload_cad_id,
            "updated_at": iso_utc(self.updated_at),
            "updated_by": self.updated_by,
        }

    def __repr__(self) -> str:
        return f"<ReserveProject #{self.id} {self.name!r} {self.status}>"
