"""Application aggregate and its line-item children."""
from __future__ import annotations

import enum
from decimal import Decimal

from seisan import db
from seisan.models.base import enum_column, new_id, utcnow


class ApplicationType(enum.Enum):
    BUSINESS_TRIP = "business_trip"
    EXPENSE = "expense"


class ApplicationStatus(enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"


EDITABLE_STATUSES = frozenset({ApplicationStatus.DRAFT, ApplicationStatus.RETURNED})

TRIP_ESTIMATE_FIELDS = (
    "estimated_daily_allowance",
    "estimated_transportation",
    "estimated_accommodation",
)
TRIP_ACTUAL_FIELDS = (
    "actual_daily_allowance",
    "actual_transportation",
    "actual_accommodation",
)


def _money(value) -> float | None:
    return float(value) if value is not None else None


class Application(db.Model):
    __tablename__ = "applications"
    __table_args__ = (
        db.CheckConstraint("total_amount >= 0", name="ck_applications_total_non_negative"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("user_profiles.id"), nullable=False, index=True)
    organization_id = db.Column(
        db.String(36), db.ForeignKey("organizations.id"), nullable=True, index=True
    )
    type = db.Column(enum_column(ApplicationType, "application_type"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    data = db.Column(db.JSON, nullable=False, default=dict)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    status = db.Column(
        enum_column(ApplicationStatus, "application_status"),
        nullable=False,
        default=ApplicationStatus.DRAFT,
        index=True,
    )
    submitted_at = db.Column(db.DateTime, nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    approved_by = db.Column(db.String(36), db.ForeignKey("user_profiles.id"), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at = db.Column(db.DateTime, nullable=True)

    owner = db.relationship("User", foreign_keys=[user_id], lazy="joined")
    approver = db.relationship("User", foreign_keys=[approved_by], lazy="joined")
    organization = db.relationship("Organization", lazy="joined")
    expense_items = db.relationship(
        "ExpenseItem",
        back_populates="application",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ExpenseItem.date",
    )
    trip_detail = db.relationship(
        "BusinessTripDetail",
        back_populates="application",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    approvals = db.relationship(
        "ApplicationApproval",
        back_populates="application",
        lazy="selectin",
        order_by="ApplicationApproval.step",
    )

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    def to_dict(self, include_children: bool = False) -> dict:
        payload = {
            "id": self.id,
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "type": self.type.value if self.type else None,
            "title": self.title,
            "description": self.description,
            "data": self.data or {},
            "total_amount": _money(self.total_amount),
            "status": self.status.value if self.status else None,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "approved_by": self.approved_by,
            "rejection_reason": self.rejection_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            payload["expense_items"] = [item.to_dict() for item in self.expense_items]
            payload["trip"] = self.trip_detail.to_dict() if self.trip_detail else None
        return payload

    def __repr__(self) -> str:
        return f"<Application id={self.id} status={self.status.value if self.status else None}>"


class ExpenseCategory(db.Model):
    __tablename__ = "expense_categories"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(
        db.String(36), db.ForeignKey("organizations.id"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    sort_order = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    organization = db.relationship("Organization", back_populates="categories")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
        }

    def __repr__(self) -> str:
        return f"<ExpenseCategory {self.name}>"


class ExpenseItem(db.Model):
    __tablename__ = "expense_items"
    __table_args__ = (db.CheckConstraint("amount > 0", name="ck_expense_items_amount_positive"),)

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    application_id = db.Column(
        db.String(36), db.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id = db.Column(
        db.String(36), db.ForeignKey("expense_categories.id", ondelete="SET NULL"), nullable=True
    )
    date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.Text, nullable=True)
    receipt_url = db.Column(db.String(512), nullable=True)
    receipt_metadata = db.Column(db.JSON, nullable=False, default=dict)
    is_approved = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    application = db.relationship("Application", back_populates="expense_items")
    category = db.relationship("ExpenseCategory", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "date": self.date.isoformat() if self.date else None,
            "amount": _money(self.amount),
            "description": self.description,
            "receipt_url": self.receipt_url,
            "receipt_metadata": self.receipt_metadata or {},
            "is_approved": self.is_approved,
        }

    def __repr__(self) -> str:
        return f"<ExpenseItem id={self.id} amount={self.amount}>"


class BusinessTripDetail(db.Model):
    __tablename__ = "business_trip_details"
    __table_args__ = (
        db.CheckConstraint("end_date >= start_date", name="ck_business_trip_details_dates"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    application_id = db.Column(
        db.String(36),
        db.ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    destination = db.Column(db.String(255), nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    purpose = db.Column(db.Text, nullable=False)
    participants = db.Column(db.Text, nullable=True)
    estimated_daily_allowance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    estimated_transportation = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    estimated_accommodation = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    actual_daily_allowance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    actual_transportation = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    actual_accommodation = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    report_content = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    application = db.relationship("Application", back_populates="trip_detail")

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def to_dict(self) -> dict:
        payload = {
            "id": self.id,
            "application_id": self.application_id,
            "destination": self.destination,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "purpose": self.purpose,
            "participants": self.participants,
            "report_content": self.report_content,
        }
        for field in TRIP_ESTIMATE_FIELDS + TRIP_ACTUAL_FIELDS:
            payload[field] = _money(getattr(self, field))
        return payload

    def __repr__(self) -> str:
        return f"<BusinessTripDetail application_id={self.application_id}>"
