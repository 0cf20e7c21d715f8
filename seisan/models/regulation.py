"""Travel regulation (出張旅費規程) model."""
from __future__ import annotations

import enum

from seisan import db
from seisan.models.base import enum_column, new_id, utcnow


class RegulationStatus(enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class TravelRegulation(db.Model):
    __tablename__ = "travel_regulations"
    __table_args__ = (
        db.Index("idx_travel_regulations_org_status", "organization_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey("organizations.id"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    version = db.Column(db.String(32), nullable=False, default="v1.0")
    company_info = db.Column(db.JSON, nullable=False, default=dict)
    articles = db.Column(db.JSON, nullable=False, default=dict)
    allowance_settings = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(
        enum_column(RegulationStatus, "regulation_status"),
        nullable=False,
        default=RegulationStatus.DRAFT,
    )
    created_by = db.Column(db.String(36), db.ForeignKey("user_profiles.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    organization = db.relationship("Organization")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "version": self.version,
            "company_info": self.company_info or {},
            "articles": self.articles or {},
            "allowance_settings": self.allowance_settings or {},
            "status": self.status.value if self.status else None,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<TravelRegulation {self.name} {self.version} {self.status.value if self.status else None}>"
