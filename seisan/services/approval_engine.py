"""Approval workflow engine.

``decide`` is the only code path that moves an application out of
``pending``. The status change is a compare-and-swap UPDATE guarded on
``status = 'pending'``; the approval row, the submitter's notification and
the audit entry commit in the same transaction. Accounting sync and email run
after the commit and cannot undo the decision.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from seisan import db
from seisan.models import (
    Application,
    ApplicationApproval,
    ApplicationStatus,
    ApprovalAction,
    Notification,
    NotificationCategory,
)
from seisan.models.base import utcnow
from seisan.services.accounting_service import SyncResult, dispatch_sync
from seisan.services.application_service import get_application
from seisan.services.audit_service import snapshot, write_audit_log
from seisan.services.context import Actor
from seisan.services.errors import (
    ConflictError,
    InvalidStateError,
    PermissionDeniedError,
    ValidationError,
)
from seisan.services.notification_service import build_notification, deliver_channels

logger = logging.getLogger(__name__)

TARGET_STATUS = {
    ApprovalAction.APPROVED: ApplicationStatus.APPROVED,
    ApprovalAction.REJECTED: ApplicationStatus.REJECTED,
    ApprovalAction.RETURNED: ApplicationStatus.RETURNED,
}

NOTICE_TEXT = {
    ApprovalAction.APPROVED: ("申請が承認されました", "「{title}」が承認されました。"),
    ApprovalAction.REJECTED: ("申請が否認されました", "「{title}」が否認されました。理由: {comment}"),
    ApprovalAction.RETURNED: ("申請が差し戻されました", "「{title}」が差し戻されました。理由: {comment}"),
}


@dataclass
class DecisionResult:
    application: Application
    approval: ApplicationApproval
    notification: Notification
    sync: Optional[SyncResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "application": self.application.to_dict(),
            "approval": self.approval.to_dict(),
            "notification_id": self.notification.id,
            "accounting_sync": self.sync.to_dict() if self.sync else None,
        }


def parse_action(value: Any) -> ApprovalAction:
    if isinstance(value, ApprovalAction):
        return value
    try:
        return ApprovalAction(str(value))
    except ValueError:
        raise ValidationError(
            f"Unknown action '{value}'. Expected approved, rejected or returned.", field="action"
        ) from None


def _next_step(application_id: str) -> int:
    return db.session.scalar(
        select(func.coalesce(func.max(ApplicationApproval.step), 0) + 1).where(
            ApplicationApproval.application_id == application_id
        )
    )


def decide(actor: Actor, application_id: str, action: Any, comment: Optional[str] = None) -> DecisionResult:
    """Record one approval decision against a pending application."""
    application = get_application(actor, application_id)
    if not actor.is_approver:
        raise PermissionDeniedError("Only managers and admins can decide on applications.")

    action = parse_action(action)
    comment = (comment or "").strip() or None
    if action != ApprovalAction.APPROVED and not comment:
        raise ValidationError("A comment is required to reject or return an application.", field="comment")
    if application.status != ApplicationStatus.PENDING:
        raise InvalidStateError(
            f"Only pending applications can be decided (status is {application.status.value}).",
            status=application.status.value,
        )

    before = snapshot(application)
    now = utcnow()
    values: Dict[str, Any] = {"status": TARGET_STATUS[action], "updated_at": now}
    if action == ApprovalAction.APPROVED:
        values.update(approved_at=now, approved_by=actor.user_id, rejection_reason=None)
    else:
        values.update(approved_at=None, approved_by=None, rejection_reason=comment)

    result = db.session.execute(
        update(Application)
        .where(Application.id == application.id, Application.status == ApplicationStatus.PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        logger.info(f"Decision on application {application_id} lost the race")
        raise ConflictError("Application was decided by another approver.", application_id=application_id)

    approval = ApplicationApproval(
        application_id=application.id,
        approver_id=actor.user_id,
        step=_next_step(application.id),
        status=action,
        comment=comment,
    )
    db.session.add(approval)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Application was decided by another approver.", application_id=application_id) from None

    db.session.refresh(application)
    title, template = NOTICE_TEXT[action]
    data = {
        "application_id": application.id,
        "application_title": application.title,
        "action": action.value,
        "amount": float(application.total_amount or 0),
        "reason": comment,
        "decided_at": now.isoformat(timespec="seconds"),
    }
    notification = build_notification(
        application.user_id,
        NotificationCategory.APPROVAL,
        title,
        template.format(title=application.title, comment=comment),
        data,
    )
    write_audit_log(
        actor,
        f"application.{action.value}",
        application,
        old_values=before,
        new_values=snapshot(application),
    )
    db.session.commit()
    logger.info(f"Application {application.id} {action.value} by {actor.user_id} (step {approval.step})")

    if current_app.config.get("NOTIFY_EMAIL_ON_DECISION"):
        deliver_channels(
            application.user_id,
            notification.title,
            notification.message,
            data,
            channels=("email",),
            template_id=f"application_{action.value}",
        )

    sync = None
    if action == ApprovalAction.APPROVED:
        try:
            sync = dispatch_sync(application.id)
        except Exception:
            logger.exception(f"Accounting sync could not be started for application {application.id}")
            db.session.rollback()

    return DecisionResult(application, approval, notification, sync)


def list_pending(actor: Actor) -> List[Application]:
    """Pending applications of the actor's organization, oldest first."""
    if not actor.is_approver:
        raise PermissionDeniedError("Only managers and admins can view the approval queue.")
    stmt = (
        select(Application)
        .where(
            Application.organization_id == actor.organization_id,
            Application.status == ApplicationStatus.PENDING,
            Application.deleted_at.is_(None),
        )
        .order_by(Application.submitted_at)
    )
    return list(db.session.scalars(stmt))


def approval_history(actor: Actor, application_id: str) -> List[ApplicationApproval]:
    application = get_application(actor, application_id)
    stmt = (
        select(ApplicationApproval)
        .where(ApplicationApproval.application_id == application.id)
        .order_by(ApplicationApproval.step)
    )
    return list(db.session.scalars(stmt))
