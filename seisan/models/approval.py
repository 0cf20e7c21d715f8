"""Approval decision records."""
from __future__ import annotations

import enum

from seisan import db
from seisan.models.base import enum_column, new_id, utcnow


class ApprovalAction(enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"


class ApplicationApproval(db.Model):
    """One immutable decision; rows are only ever inserted."""

    __tablename__ = "application_approvals"
    __table_args__ = (
        db.UniqueConstraint("application_id", "step", name="uq_application_approvals_step"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    application_id = db.Column(
        db.String(36), db.ForeignKey("applications.id"), nullable=False, index=True
    )
    approver_id = db.Column(db.String(36), db.ForeignKey("user_profiles.id"), nullable=False, index=True)
    step = db.Column(db.Integer, nullable=False)
    status = db.Column(enum_column(ApprovalAction, "approval_action"), nullable=False)
    comment = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    application = db.relationship("Application", back_populates="approvals")
    approver = db.relationship("User", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "approver_id": self.approver_id,
            "approver_name": self.approver.full_name if self.approver else None,
            "step": self.step,
            "status": self.status.value if self.status else None,
            "comment": self.comment,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<ApplicationApproval application_id={self.application_id} "
            f"step={self.step} status={self.status.value if self.status else None}>"
        )
