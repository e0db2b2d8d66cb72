"""
Stored object metadata.

Binary content lives on disk under OBJECT_STORE_ROOT; this row is the
authoritative record that an object exists. An artifact reference on a
ReserveProject is valid exactly when a row with that id is present.
"""

from datetime import datetime, timezone

from lpms.models import db
from lpms.models.reserve import iso_utc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredObject(db.Model):
    __tablename__ = "stored_objects"

    id = db.Column(db.String(64), primary_key=True, comment="uuid4 hex")
    file_name = db.Column(db.String(255), nullable=False)
    content_type = db.Column(db.String(100), nullable=True)
    size = db.Column(db.Integer, nullable=False, default=0, comment="Size in bytes")
    sha256 = db.Column(db.String(64), nullable=False)
    storage_path = db.Column(
        db.String(500),
        nullable=False,
        comment="Path relative to OBJECT_STORE_ROOT",
    )
    created_by = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "content_type": self.content_type,
            "size": self.size,
            "sha256": self.sha256,
            "created_by": self.created_by,
            "created_at": iso_utc(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<StoredObject {self.id} {self.file_name!r}>"
