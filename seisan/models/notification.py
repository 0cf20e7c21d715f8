"""In-app notification model."""
from __future__ import annotations

import enum

from seisan import db
from seisan.models.base import enum_column, new_id, utcnow


class NotificationCategory(enum.Enum):
    APPROVAL = "approval"
    REMINDER = "reminder"
    SYSTEM = "system"
    UPDATE = "update"


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("user_profiles.id"), nullable=False, index=True)
    type = db.Column(enum_column(NotificationCategory, "notification_category"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, nullable=False, default=dict)
    read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type.value if self.type else None,
            "title": self.title,
            "message": self.message,
            "data": self.data or {},
            "read": self.read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Notification user_id={self.user_id} read={self.read}>"
