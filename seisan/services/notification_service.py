"""In-app notifications plus optional email/push fan-out."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select, update

from seisan import db
from seisan.models import Notification, NotificationCategory, User
from seisan.models.base import utcnow
from seisan.services.context import Actor
from seisan.services.email_service import email_service
from seisan.services.errors import NotFoundError, ServiceError, ValidationError
from seisan.services.push_service import send_push

logger = logging.getLogger(__name__)

CHANNELS = ("email", "push")


def parse_category(value: Any) -> NotificationCategory:
    if isinstance(value, NotificationCategory):
        return value
    try:
        return NotificationCategory(str(value))
    except ValueError:
        raise ValidationError(f"Unknown notification category '{value}'.", field="type") from None


def build_notification(
    user_id: str,
    category: Any,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> Notification:
    """Add an unread notification to the session without committing."""
    notification = Notification(
        user_id=user_id,
        type=parse_category(category),
        title=title,
        message=message,
        data=data or {},
        read=False,
    )
    db.session.add(notification)
    return notification


def deliver_channels(
    user_id: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    channels: Iterable[str] = (),
    template_id: Optional[str] = None,
) -> Dict[str, bool]:
    """Best-effort email/push delivery; returns per-channel success."""
    results: Dict[str, bool] = {}
    channels = [c for c in channels if c in CHANNELS]
    if not channels:
        return results

    user = db.session.get(User, user_id)
    for channel in channels:
        if channel == "email":
            if user is None or not user.email:
                logger.warning(f"No email address for user {user_id}; skipping email")
                results["email"] = False
                continue
            results["email"] = email_service.send_template(user.email, template_id, title, message, data)
        elif channel == "push":
            try:
                send_push(user_id, title, message, data)
                results["push"] = True
            except ServiceError as exc:
                logger.warning(f"Push notification to {user_id} failed: {exc.message}")
                results["push"] = False
    return results


def notify(
    user_id: str,
    category: Any,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    channels: Iterable[str] = (),
    template_id: Optional[str] = None,
) -> Notification:
    """Persist a notification, then attempt the requested channels."""
    notification = build_notification(user_id, category, title, message, data)
    db.session.commit()
    deliver_channels(user_id, title, message, data, channels, template_id)
    return notification


def _get_own(actor: Actor, notification_id: str) -> Notification:
    notification = db.session.get(Notification, notification_id)
    if notification is None or notification.user_id != actor.user_id:
        raise NotFoundError("Notification not found.", notification_id=notification_id)
    return notification


def mark_read(actor: Actor, notification_id: str) -> Notification:
    notification = _get_own(actor, notification_id)
    if not notification.read:
        notification.read = True
        notification.read_at = utcnow()
        db.session.commit()
    return notification


def mark_all_read(actor: Actor) -> int:
    result = db.session.execute(
        update(Notification)
        .where(Notification.user_id == actor.user_id, Notification.read.is_(False))
        .values(read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    db.session.expire_all()
    return result.rowcount or 0


def delete_notification(actor: Actor, notification_id: str) -> None:
    notification = _get_own(actor, notification_id)
    db.session.delete(notification)
    db.session.commit()


def list_notifications(
    actor: Actor,
    unread_only: bool = False,
    since: Optional[datetime] = None,
    limit: int = 50,
) -> List[Notification]:
    """Newest first. ``since`` returns only rows created after that instant."""
    stmt = select(Notification).where(Notification.user_id == actor.user_id)
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    if since is not None:
        stmt = stmt.where(Notification.created_at > since)
    stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
    return list(db.session.scalars(stmt))


def unread_count(actor: Actor) -> int:
    return db.session.scalar(
        select(func.count(Notification.id)).where(
            Notification.user_id == actor.user_id, Notification.read.is_(False)
        )
    ) or 0
