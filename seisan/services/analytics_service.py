"""Organization-level spending statistics for the admin dashboard."""
from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func, select

from seisan import db
from seisan.models import Application, ApplicationStatus, ApplicationType, User
from seisan.services.context import Actor
from seisan.services.errors import PermissionDeniedError


UNASSIGNED_DEPARTMENT = "未設定"


def _month_start(day: date, months_back: int = 0) -> datetime:
    month_index = day.year * 12 + (day.month - 1) - months_back
    return datetime.combine(date(month_index // 12, month_index % 12 + 1, 1), time.min)


def _active(organization_id: Optional[str]):
    return (
        Application.organization_id == organization_id,
        Application.deleted_at.is_(None),
    )


def monthly_summary(organization_id: Optional[str], since: datetime) -> Dict[str, Any]:
    rows = db.session.execute(
        select(Application.status, func.count(Application.id), func.coalesce(func.sum(Application.total_amount), 0))
        .where(*_active(organization_id), Application.created_at >= since)
        .group_by(Application.status)
    ).all()

    total = sum((Decimal(str(amount)) for _, _, amount in rows), Decimal("0"))
    count = sum(n for _, n, _ in rows)
    by_status = {status: n for status, n, _ in rows}
    return {
        "monthly_total": float(total),
        "monthly_count": count,
        "pending_count": by_status.get(ApplicationStatus.PENDING, 0),
        "approved_count": by_status.get(ApplicationStatus.APPROVED, 0),
        "average_amount": float(total / count) if count else 0.0,
    }


def monthly_trend(organization_id: Optional[str], since: datetime) -> Dict[str, Dict[str, Any]]:
    """Approved totals keyed by ``YYYY-MM``."""
    rows = db.session.execute(
        select(Application.created_at, Application.type, Application.total_amount).where(
            *_active(organization_id),
            Application.status == ApplicationStatus.APPROVED,
            Application.created_at >= since,
        )
    ).all()

    trend: Dict[str, Dict[str, Any]] = defaultdict(
        lambda: {"total": 0.0, "count": 0, "business_trip": 0.0, "expense": 0.0}
    )
    for created_at, app_type, amount in rows:
        bucket = trend[created_at.strftime("%Y-%m")]
        amount = float(amount or 0)
        bucket["total"] += amount
        bucket["count"] += 1
        bucket["business_trip" if app_type == ApplicationType.BUSINESS_TRIP else "expense"] += amount
    return dict(sorted(trend.items()))


def department_breakdown(organization_id: Optional[str], since: datetime) -> Dict[str, float]:
    rows = db.session.execute(
        select(User.department, func.coalesce(func.sum(Application.total_amount), 0))
        .join(User, Application.user_id == User.id)
        .where(
            *_active(organization_id),
            Application.status == ApplicationStatus.APPROVED,
            Application.created_at >= since,
        )
        .group_by(User.department)
    ).all()

    breakdown: Dict[str, float] = defaultdict(float)
    for department, amount in rows:
        breakdown[department or UNASSIGNED_DEPARTMENT] += float(amount or 0)
    return dict(breakdown)


def organization_statistics(actor: Actor, today: Optional[date] = None) -> Dict[str, Any]:
    if not actor.is_approver:
        raise PermissionDeniedError("Only managers and admins can view analytics.")

    today = today or date.today()
    month_start = _month_start(today)
    return {
        "summary": monthly_summary(actor.organization_id, month_start),
        "trends": {"monthly": monthly_trend(actor.organization_id, _month_start(today, 12))},
        "breakdowns": {"by_department": department_breakdown(actor.organization_id, month_start)},
        "generated_at": datetime.now().isoformat(timespec="seconds"),
    }
