"""Organization travel regulations (出張旅費規程).

Each organization keeps any number of regulation drafts; at most one is
``active`` at a time and that one feeds the ``travel_regulation`` document.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from seisan import db
from seisan.models import RegulationStatus, TravelRegulation, UserRole
from seisan.services.audit_service import snapshot, write_audit_log
from seisan.services.context import Actor
from seisan.services.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "v1.0"
CONTENT_FIELDS = ("company_info", "articles", "allowance_settings")


def _require_admin(actor: Actor) -> None:
    if actor.role != UserRole.ADMIN:
        raise PermissionDeniedError("Only admins can manage travel regulations.")
    if not actor.organization_id:
        raise ValidationError("Travel regulations require an organization.", field="organization_id")


def _clean_name(value: Any) -> str:
    name = str(value or "").strip()
    if not name:
        raise ValidationError("'name' is required.", field="name")
    if len(name) > 255:
        raise ValidationError("'name' must be at most 255 characters.", field="name")
    return name


def _clean_content(field: str, value: Any) -> Any:
    if value is None:
        return {}
    if not isinstance(value, (dict, list)):
        raise ValidationError(f"'{field}' must be an object or a list.", field=field)
    return value


def parse_status(value: Any) -> RegulationStatus:
    if isinstance(value, RegulationStatus):
        return value
    try:
        return RegulationStatus(str(value))
    except ValueError:
        raise ValidationError(f"Unknown regulation status '{value}'.", field="status") from None


def list_regulations(actor: Actor, status: Optional[str] = None) -> List[TravelRegulation]:
    """Regulations of the caller's organization, newest first."""
    stmt = select(TravelRegulation).where(TravelRegulation.organization_id == actor.organization_id)
    if status:
        stmt = stmt.where(TravelRegulation.status == parse_status(status))
    stmt = stmt.order_by(TravelRegulation.created_at.desc())
    return list(db.session.scalars(stmt))


def get_regulation(actor: Actor, regulation_id: str) -> TravelRegulation:
    regulation = db.session.get(TravelRegulation, regulation_id)
    if regulation is None or regulation.organization_id != actor.organization_id:
        raise NotFoundError("Travel regulation not found.", regulation_id=regulation_id)
    return regulation


def get_active_regulation(organization_id: Optional[str]) -> Optional[TravelRegulation]:
    stmt = (
        select(TravelRegulation)
        .where(
            TravelRegulation.organization_id == organization_id,
            TravelRegulation.status == RegulationStatus.ACTIVE,
        )
        .order_by(TravelRegulation.updated_at.desc())
        .limit(1)
    )
    return db.session.scalars(stmt).first()


def create_regulation(
    actor: Actor,
    name: Any,
    company_info: Any = None,
    articles: Any = None,
    allowance_settings: Any = None,
) -> TravelRegulation:
    """New draft regulation at the default version."""
    _require_admin(actor)
    regulation = TravelRegulation(
        organization_id=actor.organization_id,
        name=_clean_name(name),
        version=DEFAULT_VERSION,
        company_info=_clean_content("company_info", company_info),
        articles=_clean_content("articles", articles),
        allowance_settings=_clean_content("allowance_settings", allowance_settings),
        status=RegulationStatus.DRAFT,
        created_by=actor.user_id,
    )
    try:
        db.session.add(regulation)
        db.session.flush()
        write_audit_log(actor, "regulation.create", regulation, new_values=snapshot(regulation))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Created travel regulation {regulation.id} for organization {actor.organization_id}")
    return regulation


def update_regulation(actor: Actor, regulation_id: str, changes: Dict[str, Any]) -> TravelRegulation:
    """Edit name, version or content; archived regulations are read-only."""
    _require_admin(actor)
    regulation = get_regulation(actor, regulation_id)
    if regulation.status == RegulationStatus.ARCHIVED:
        raise InvalidStateError("Archived regulations cannot be edited.", regulation_id=regulation_id)

    updates: Dict[str, Any] = {}
    if "name" in changes:
        updates["name"] = _clean_name(changes["name"])
    if "version" in changes:
        version = str(changes["version"] or "").strip()
        if not version or len(version) > 32:
            raise ValidationError("'version' must be 1 to 32 characters.", field="version")
        updates["version"] = version
    for field in CONTENT_FIELDS:
        if field in changes:
            updates[field] = _clean_content(field, changes[field])

    old_values = snapshot(regulation)
    for field, value in updates.items():
        setattr(regulation, field, value)

    try:
        write_audit_log(
            actor, "regulation.update", regulation, old_values=old_values, new_values=snapshot(regulation)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return regulation


def activate_regulation(actor: Actor, regulation_id: str) -> TravelRegulation:
    """Make one regulation active and archive the one it replaces."""
    _require_admin(actor)
    regulation = get_regulation(actor, regulation_id)
    if regulation.status == RegulationStatus.ACTIVE:
        return regulation
    if regulation.status == RegulationStatus.ARCHIVED:
        raise InvalidStateError("Archived regulations cannot be reactivated.", regulation_id=regulation_id)

    try:
        for previous in list_regulations(actor, RegulationStatus.ACTIVE.value):
            previous.status = RegulationStatus.ARCHIVED
            write_audit_log(
                actor, "regulation.archive", previous,
                old_values={"status": "active"}, new_values={"status": "archived"},
            )
        regulation.status = RegulationStatus.ACTIVE
        write_audit_log(
            actor, "regulation.activate", regulation,
            old_values={"status": "draft"}, new_values={"status": "active"},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Activated travel regulation {regulation.id} ({regulation.version})")
    return regulation


def delete_regulation(actor: Actor, regulation_id: str) -> None:
    _require_admin(actor)
    regulation = get_regulation(actor, regulation_id)
    if regulation.status == RegulationStatus.ACTIVE:
        raise InvalidStateError("The active regulation cannot be deleted.", regulation_id=regulation_id)
    try:
        write_audit_log(actor, "regulation.delete", regulation, old_values=snapshot(regulation))
        db.session.delete(regulation)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
