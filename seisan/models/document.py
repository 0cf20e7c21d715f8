"""Generated document records."""
from __future__ import annotations

from seisan import db
from seisan.models.base import new_id, utcnow


class GeneratedDocument(db.Model):
    __tablename__ = "documents"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey("organizations.id"), nullable=True)
    application_id = db.Column(db.String(36), db.ForeignKey("applications.id"), nullable=True)
    created_by = db.Column(db.String(36), db.ForeignKey("user_profiles.id"), nullable=False)
    type = db.Column(db.String(64), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    file_url = db.Column(db.String(512), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    mime_type = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="completed")
    content = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "application_id": self.application_id,
            "type": self.type,
            "title": self.title,
            "file_url": self.file_url,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<GeneratedDocument {self.type} {self.file_url}>"
