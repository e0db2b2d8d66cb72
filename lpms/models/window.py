"""
Window-period configuration.

The rows of ``window_settings`` together form the single active
configuration. It is only ever replaced as a whole (see WindowGate.set_windows),
so no history is kept here.
"""

from datetime import datetime, timezone

from lpms.models import db
from lpms.models.reserve import iso_utc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WindowSetting(db.Model):
    """One permitted half-open interval [start_at, end_at) for gated transitions."""

    __tablename__ = "window_settings"

    id = db.Column(db.Integer, primary_key=True)
    start_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    end_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_by = db.Column(db.String(100), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_at": iso_utc(self.start_at),
            "end_at": iso_utc(self.end_at),
            "updated_by": self.updated_by,
            "updated_at": iso_utc(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<WindowSetting #{self.id} {self.start_at}..{self.end_at}>"
