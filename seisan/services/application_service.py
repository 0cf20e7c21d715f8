"""Application aggregate operations and total calculation.

Owners create and edit applications while they are ``draft`` or ``returned``.
Every mutating operation ends with ``recalculate_total`` and an audit entry,
so ``total_amount`` always matches the live children.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select, update

from seisan import db
from seisan.models import (
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
from seisan.models.base import utcnow
from seisan.services.audit_service import snapshot, write_audit_log
from seisan.services.context import Actor
from seisan.services.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
CHILD_PAYLOAD_KEYS = ("expense_items", "trip", "description")
TRIP_TEXT_FIELDS = ("destination", "purpose", "participants", "report_content")


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def parse_amount(value: Any, field: str, *, positive: bool = False) -> Decimal:
    if value is None or value == "":
        raise ValidationError(f"'{field}' is required.", field=field)
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValidationError(f"'{field}' must be a number.", field=field)
        amount = amount.quantize(CENTS)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"'{field}' must be a number.", field=field) from None
    if positive and amount <= 0:
        raise ValidationError(f"'{field}' must be greater than zero.", field=field)
    if amount < 0:
        raise ValidationError(f"'{field}' must not be negative.", field=field)
    return amount


def parse_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"'{field}' must be a date in YYYY-MM-DD format.", field=field) from None


def parse_type(value: Any) -> ApplicationType:
    if isinstance(value, ApplicationType):
        return value
    try:
        return ApplicationType(str(value))
    except ValueError:
        raise ValidationError(f"Unknown application type '{value}'.", field="type") from None


def _require_title(title: Optional[str]) -> str:
    if not title or not str(title).strip():
        raise ValidationError("'title' is required.", field="title")
    return str(title).strip()


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_application(actor: Actor, application_id: str) -> Application:
    """Return a visible, non-deleted application or raise NotFoundError."""
    application = db.session.get(Application, application_id)
    if (
        application is None
        or application.deleted_at is not None
        or not actor.can_view(application.user_id, application.organization_id)
    ):
        raise NotFoundError("Application not found.", application_id=application_id)
    return application


def list_applications(
    actor: Actor,
    status: Optional[str] = None,
    app_type: Optional[str] = None,
    organization_wide: bool = False,
) -> List[Application]:
    stmt = select(Application).where(Application.deleted_at.is_(None))
    if organization_wide and actor.is_approver and actor.organization_id:
        stmt = stmt.where(Application.organization_id == actor.organization_id)
    else:
        stmt = stmt.where(Application.user_id == actor.user_id)
    if status:
        try:
            stmt = stmt.where(Application.status == ApplicationStatus(status))
        except ValueError:
            raise ValidationError(f"Unknown status '{status}'.", field="status") from None
    if app_type:
        stmt = stmt.where(Application.type == parse_type(app_type))
    stmt = stmt.order_by(Application.created_at.desc())
    return list(db.session.scalars(stmt))


def get_editable_application(actor: Actor, application_id: str) -> Application:
    application = get_application(actor, application_id)
    if application.user_id != actor.user_id:
        raise NotFoundError("Application not found.", application_id=application_id)
    if not application.is_editable:
        raise InvalidStateError(
            f"Application is {application.status.value} and can no longer be edited.",
            status=application.status.value,
        )
    return application


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def compute_total(application: Application) -> Decimal:
    """Sum of the application's children, read from the database."""
    if application.type == ApplicationType.EXPENSE:
        total = db.session.scalar(
            select(func.coalesce(func.sum(ExpenseItem.amount), 0)).where(
                ExpenseItem.application_id == application.id
            )
        )
        return Decimal(str(total or 0)).quantize(CENTS)

    detail = db.session.scalar(
        select(BusinessTripDetail).where(BusinessTripDetail.application_id == application.id)
    )
    if detail is None:
        return Decimal("0.00")
    return sum(
        (Decimal(str(getattr(detail, field) or 0)) for field in TRIP_ESTIMATE_FIELDS),
        Decimal("0"),
    ).quantize(CENTS)


def recalculate_total(application_id: str) -> Decimal:
    """Re-sum the children and persist ``total_amount`` (caller commits)."""
    db.session.flush()
    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application not found.", application_id=application_id)
    total = compute_total(application)
    if application.total_amount is None or Decimal(str(application.total_amount)) != total:
        logger.debug(f"Application {application_id} total {application.total_amount} -> {total}")
        application.total_amount = total
    db.session.flush()
    return total


# ---------------------------------------------------------------------------
# Child value builders
# ---------------------------------------------------------------------------

def _item_values(actor: Actor, fields: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if not partial or "date" in fields:
        values["date"] = parse_date(fields.get("date"), "date")
    if not partial or "amount" in fields:
        values["amount"] = parse_amount(fields.get("amount"), "amount", positive=True)
    if "description" in fields:
        values["description"] = fields.get("description")
    if "receipt_url" in fields:
        values["receipt_url"] = fields.get("receipt_url")
    if "receipt_metadata" in fields:
        values["receipt_metadata"] = fields.get("receipt_metadata") or {}
    if fields.get("category_id"):
        category = db.session.get(ExpenseCategory, fields["category_id"])
        if category is None or category.organization_id != actor.organization_id:
            raise ValidationError("Unknown expense category.", field="category_id")
        values["category_id"] = category.id
    elif "category_id" in fields:
        values["category_id"] = None
    return values


def _trip_values(fields: Dict[str, Any], current: Optional[BusinessTripDetail] = None) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for field in ("start_date", "end_date"):
        if field in fields or current is None:
            values[field] = parse_date(fields.get(field), field)
    start = values.get("start_date", current.start_date if current else None)
    end = values.get("end_date", current.end_date if current else None)
    if start and end and end < start:
        raise ValidationError("'end_date' must not be before 'start_date'.", field="end_date")

    for field in TRIP_TEXT_FIELDS:
        if field in fields:
            values[field] = fields.get(field)
    purpose = values.get("purpose", current.purpose if current else None)
    if not purpose or not str(purpose).strip():
        raise ValidationError("'purpose' is required.", field="purpose")

    for field in TRIP_ESTIMATE_FIELDS + TRIP_ACTUAL_FIELDS:
        if field in fields:
            raw = fields.get(field)
            values[field] = Decimal("0.00") if raw in (None, "") else parse_amount(raw, field)
    return values


def _add_items(actor: Actor, application: Application, items: Iterable[Dict[str, Any]]) -> List[ExpenseItem]:
    created = []
    for fields in items:
        if not isinstance(fields, dict):
            raise ValidationError("Each expense item must be an object.", field="expense_items")
        item = ExpenseItem(application_id=application.id, **_item_values(actor, fields))
        db.session.add(item)
        created.append(item)
    return created


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def create_application(
    actor: Actor,
    app_type: Any,
    title: str,
    payload: Optional[Dict[str, Any]] = None,
) -> Application:
    """Create a draft application and any nested children in ``payload``."""
    app_type = parse_type(app_type)
    title = _require_title(title)
    payload = dict(payload or {})

    items = payload.get("expense_items") or []
    if not isinstance(items, list):
        raise ValidationError("'expense_items' must be a list.", field="expense_items")
    trip = payload.get("trip")
    if items and app_type != ApplicationType.EXPENSE:
        raise ValidationError("Expense items belong to expense applications.", field="expense_items")
    if trip and app_type != ApplicationType.BUSINESS_TRIP:
        raise ValidationError("Trip details belong to business_trip applications.", field="trip")

    application = Application(
        user_id=actor.user_id,
        organization_id=actor.organization_id,
        type=app_type,
        title=title,
        description=payload.get("description"),
        data={k: v for k, v in payload.items() if k not in CHILD_PAYLOAD_KEYS},
        total_amount=Decimal("0.00"),
        status=ApplicationStatus.DRAFT,
    )
    db.session.add(application)
    db.session.flush()

    try:
        _add_items(actor, application, items)
        if trip:
            db.session.add(BusinessTripDetail(application_id=application.id, **_trip_values(trip)))
        recalculate_total(application.id)
        write_audit_log(actor, "application.create", application, new_values=snapshot(application))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Application {application.id} created by {actor.user_id} ({app_type.value})")
    return application


def update_application(actor: Actor, application_id: str, fields: Dict[str, Any]) -> Application:
    application = get_editable_application(actor, application_id)
    before = snapshot(application)

    if "title" in fields:
        application.title = _require_title(fields.get("title"))
    if "description" in fields:
        application.description = fields.get("description")
    if "data" in fields:
        if not isinstance(fields["data"], dict):
            raise ValidationError("'data' must be an object.", field="data")
        application.data = fields["data"]

    recalculate_total(application.id)
    write_audit_log(actor, "application.update", application, old_values=before, new_values=snapshot(application))
    db.session.commit()
    return application


def add_expense_item(actor: Actor, application_id: str, fields: Dict[str, Any]) -> ExpenseItem:
    application = get_editable_application(actor, application_id)
    if application.type != ApplicationType.EXPENSE:
        raise ValidationError("Expense items belong to expense applications.", field="type")

    try:
        (item,) = _add_items(actor, application, [fields])
        db.session.flush()
        recalculate_total(application.id)
        write_audit_log(actor, "expense_item.create", item, new_values=snapshot(item))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return item


def get_expense_item(application: Application, item_id: str) -> ExpenseItem:
    item = db.session.get(ExpenseItem, item_id)
    if item is None or item.application_id != application.id:
        raise NotFoundError("Expense item not found.", item_id=item_id)
    return item


def update_expense_item(
    actor: Actor, application_id: str, item_id: str, fields: Dict[str, Any]
) -> ExpenseItem:
    application = get_editable_application(actor, application_id)
    item = get_expense_item(application, item_id)
    before = snapshot(item)

    try:
        for key, value in _item_values(actor, fields, partial=True).items():
            setattr(item, key, value)
        recalculate_total(application.id)
        write_audit_log(actor, "expense_item.update", item, old_values=before, new_values=snapshot(item))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return item


def delete_expense_item(actor: Actor, application_id: str, item_id: str) -> Decimal:
    application = get_editable_application(actor, application_id)
    item = get_expense_item(application, item_id)

    write_audit_log(actor, "expense_item.delete", item, old_values=snapshot(item))
    application.expense_items.remove(item)
    db.session.delete(item)
    total = recalculate_total(application.id)
    db.session.commit()
    return total


def set_trip_detail(actor: Actor, application_id: str, fields: Dict[str, Any]) -> BusinessTripDetail:
    """Create or update the single trip detail row of a business trip."""
    application = get_editable_application(actor, application_id)
    if application.type != ApplicationType.BUSINESS_TRIP:
        raise ValidationError("Trip details belong to business_trip applications.", field="type")

    detail = application.trip_detail
    before = snapshot(detail) if detail else {}
    try:
        values = _trip_values(fields, current=detail)
        if detail is None:
            detail = BusinessTripDetail(application_id=application.id, **values)
            db.session.add(detail)
        else:
            for key, value in values.items():
                setattr(detail, key, value)
        db.session.flush()
        recalculate_total(application.id)
        write_audit_log(actor, "trip_detail.save", detail, old_values=before, new_values=snapshot(detail))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return detail


def submit_application(actor: Actor, application_id: str) -> Application:
    """Move a draft/returned application to ``pending``."""
    application = get_application(actor, application_id)
    if application.user_id != actor.user_id:
        raise NotFoundError("Application not found.", application_id=application_id)
    if application.status not in EDITABLE_STATUSES:
        raise InvalidStateError(
            f"Only draft or returned applications can be submitted (status is {application.status.value}).",
            status=application.status.value,
        )

    recalculate_total(application.id)
    before = snapshot(application)
    now = utcnow()
    result = db.session.execute(
        update(Application)
        .where(Application.id == application.id, Application.status.in_(list(EDITABLE_STATUSES)))
        .values(
            status=ApplicationStatus.PENDING,
            submitted_at=now,
            rejection_reason=None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise ConflictError("Application was changed by another request.", application_id=application_id)

    db.session.refresh(application)
    write_audit_log(actor, "application.submit", application, old_values=before, new_values=snapshot(application))
    db.session.commit()
    logger.info(f"Application {application.id} submitted by {actor.user_id}")
    return application


def delete_application(actor: Actor, application_id: str) -> None:
    """Soft delete; approval and audit history keep referring to the row."""
    application = get_editable_application(actor, application_id)
    application.deleted_at = utcnow()
    write_audit_log(actor, "application.delete", application, old_values=snapshot(application))
    db.session.commit()
    logger.info(f"Application {application.id} deleted by {actor.user_id}")
