"""Audit logging model."""
from __future__ import annotations

from seisan import db
from seisan.models.base import new_id, utcnow


class AuditLog(db.Model):
    __tablename__ = "audit_logs"
    __table_args__ = (db.Index("idx_audit_logs_org_created", "organization_id", "created_at"),)

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey("organizations.id"), nullable=True)
    user_id = db.Column(db.String(36), db.ForeignKey("user_profiles.id"), nullable=True)
    action = db.Column(db.String(120), nullable=False)
    resource_type = db.Column(db.String(120), nullable=False)
    resource_id = db.Column(db.String(36), nullable=True)
    old_values = db.Column(db.JSON, nullable=False, default=dict)
    new_values = db.Column(db.JSON, nullable=False, default=dict)
    ip_address = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "user_id": self.user_id,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "old_values": self.old_values or {},
            "new_values": self.new_values or {},
            "ip_address": self.ip_address,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<AuditLog {self.resource_type}#{self.resource_id} action={self.action}>"
