"""Application data models exposed for easy imports."""
from seisan import db  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import APPROVER_ROLES, User, UserRole  # noqa: F401
from .application import (  # noqa: F401
    EDITABLE_STATUSES,
    TRIP_ACTUAL_FIELDS,
    TRIP_ESTIMATE_FIELDS,
    Application,
    ApplicationStatus,
    ApplicationType,
    BusinessTripDetail,
    ExpenseCategory,
    ExpenseItem,
)
from .approval import ApplicationApproval, ApprovalAction  # noqa: F401
from .notification import Notification, NotificationCategory  # noqa: F401
from .accounting import (  # noqa: F401
    AccountingIntegrationLog,
    AccountingOperation,
    IntegrationStatus,
)
from .audit import AuditLog  # noqa: F401
from .document import GeneratedDocument  # noqa: F401
from .regulation import RegulationStatus, TravelRegulation  # noqa: F401

__all__ = [
    "db",
    "Organization",
    "User",
    "UserRole",
    "APPROVER_ROLES",
    "Application",
    "ApplicationStatus",
    "ApplicationType",
    "EDITABLE_STATUSES",
    "TRIP_ESTIMATE_FIELDS",
    "TRIP_ACTUAL_FIELDS",
    "ExpenseCategory",
    "ExpenseItem",
    "BusinessTripDetail",
    "ApplicationApproval",
    "ApprovalAction",
    "Notification",
    "NotificationCategory",
    "AccountingIntegrationLog",
    "AccountingOperation",
    "IntegrationStatus",
    "AuditLog",
    "GeneratedDocument",
    "RegulationStatus",
    "TravelRegulation",
]
