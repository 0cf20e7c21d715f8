"""Audit log helpers.

``write_audit_log`` only ADDS an AuditLog row to the current session. The
calling service owns the transaction boundary (commit/rollback), so the audit
entry lands atomically with the mutation it describes.
"""
from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from seisan import db
from seisan.models import AuditLog
from seisan.services.context import Actor


def json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return repr(value)


def snapshot(instance: Any) -> Dict[str, Any]:
    """Scalar column values of a model instance (relationships excluded)."""
    return {
        column.name: json_safe(getattr(instance, column.key, None))
        for column in instance.__table__.columns
    }


def write_audit_log(
    actor: Optional[Actor],
    action: str,
    entity: Any,
    *,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("write_audit_log entity must have an 'id' (flush first).")

    entry = AuditLog(
        organization_id=getattr(entity, "organization_id", None)
        or (actor.organization_id if actor else None),
        user_id=actor.user_id if actor else None,
        action=action,
        resource_type=entity.__class__.__name__,
        resource_id=str(entity_id),
        old_values=json_safe(old_values or {}),
        new_values=json_safe(new_values or {}),
        ip_address=actor.ip_address if actor else None,
    )
    db.session.add(entry)
    return entry
