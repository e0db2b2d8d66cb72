"""User directory model.

Authentication itself happens upstream; this table only answers
"who is this caller and are they an administrator".
"""

from datetime import datetime, timezone

from lpms.models import db
from lpms.models.reserve import iso_utc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    user_name = db.Column(db.String(100), nullable=False, unique=True, index=True)
    display_name = db.Column(db.String(200), nullable=True)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_name": self.user_name,
            "display_name": self.display_name,
            "is_admin": self.is_admin,
            "created_at": iso_utc(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.user_name}{' (admin)' if self.is_admin else ''}>"
