"""Organization (tenant) model."""
from __future__ import annotations

from typing import Any, Dict, Optional

from seisan import db
from seisan.models.base import new_id, utcnow


class Organization(db.Model):
    __tablename__ = "organizations"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), unique=True, nullable=False)
    settings = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    members = db.relationship("User", back_populates="organization", lazy="selectin")
    categories = db.relationship(
        "ExpenseCategory",
        back_populates="organization",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def accounting_settings(self) -> Dict[str, Any]:
        return (self.settings or {}).get("accounting") or {}

    def accounting_credentials(self, service: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Credentials for ``service`` (or the default service), if configured."""
        accounting = self.accounting_settings()
        service = service or accounting.get("default_service", "freee")
        return (accounting.get("services") or {}).get(service)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Organization {self.name}>"
