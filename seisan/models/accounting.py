"""Accounting integration log model."""
from __future__ import annotations

import enum

from seisan import db
from seisan.models.base import enum_column, new_id, utcnow


class IntegrationStatus(enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class AccountingOperation(enum.Enum):
    CREATE_ENTRY = "create_entry"
    UPDATE_ENTRY = "update_entry"
    DELETE_ENTRY = "delete_entry"


class AccountingIntegrationLog(db.Model):
    __tablename__ = "accounting_integration_logs"
    __table_args__ = (
        db.Index("idx_accounting_logs_app_status", "application_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    application_id = db.Column(db.String(36), db.ForeignKey("applications.id"), nullable=False)
    service_name = db.Column(db.String(64), nullable=False)
    operation_type = db.Column(db.String(32), nullable=False)
    request_data = db.Column(db.JSON, nullable=False, default=dict)
    response_data = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(
        enum_column(IntegrationStatus, "integration_status"),
        nullable=False,
        default=IntegrationStatus.PENDING,
    )
    error_message = db.Column(db.Text, nullable=True)
    retry_count = db.Column(db.Integer, nullable=False, default=0)
    last_retry_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    application = db.relationship("Application", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "service_name": self.service_name,
            "operation_type": self.operation_type,
            "request_data": self.request_data or {},
            "response_data": self.response_data or {},
            "status": self.status.value if self.status else None,
            "error_message": self.error_message,
            "retry_count": self.retry_count,
            "last_retry_at": self.last_retry_at.isoformat() if self.last_retry_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<AccountingIntegrationLog {self.service_name} application_id={self.application_id} "
            f"status={self.status.value if self.status else None}>"
        )
