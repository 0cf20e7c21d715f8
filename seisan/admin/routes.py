"""Admin routes."""
from __future__ import annotations

from typing import Any, Dict

from flask import request
from flask_login import login_required

from seisan.forms import AllowanceDocumentForm, RegulationDocumentForm, RegulationForm
from seisan.models import UserRole
from seisan.services import accounting_service, analytics_service, document_service, regulation_service
from seisan.services.errors import ValidationError
from seisan.utils.helpers import current_actor, form_errors, json_response, role_required

from . import admin_bp


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


@admin_bp.route("/accounting/logs", methods=["GET"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def accounting_logs() -> Any:
    logs = accounting_service.list_integration_logs(
        current_actor(),
        application_id=request.args.get("application_id"),
        status=request.args.get("status"),
    )
    return json_response({"logs": [log.to_dict() for log in logs]})


@admin_bp.route("/accounting/logs/<log_id>/retry", methods=["POST"])
@login_required
@role_required(UserRole.ADMIN)
def retry_accounting_log(log_id: str) -> Any:
    log = accounting_service.get_integration_log(current_actor(), log_id)
    result = accounting_service.retry_sync(log.id)
    return json_response({"result": result.to_dict()})


@admin_bp.route("/analytics", methods=["GET"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def analytics() -> Any:
    return json_response(analytics_service.organization_statistics(current_actor()))


@admin_bp.route("/documents/allowance", methods=["POST"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def allowance_document() -> Any:
    form = AllowanceDocumentForm()
    if not form.validate():
        return json_response(form_errors(form), status=400)

    document = document_service.generate_allowance_detail(
        current_actor(),
        form.user_id.data or None,
        form.start_date.data,
        form.end_date.data,
        form.format.data,
    )
    return json_response({"document": document.to_dict()}, status=201)


@admin_bp.route("/regulations", methods=["GET"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def list_regulations() -> Any:
    regulations = regulation_service.list_regulations(current_actor(), status=request.args.get("status"))
    return json_response({"regulations": [r.to_dict() for r in regulations]})


@admin_bp.route("/regulations", methods=["POST"])
@login_required
@role_required(UserRole.ADMIN)
def create_regulation() -> Any:
    form = RegulationForm()
    if not form.validate():
        return json_response(form_errors(form), status=400)

    body = _json_body()
    regulation = regulation_service.create_regulation(
        current_actor(),
        form.name.data,
        company_info=body.get("company_info"),
        articles=body.get("articles"),
        allowance_settings=body.get("allowance_settings"),
    )
    return json_response({"regulation": regulation.to_dict()}, status=201)


@admin_bp.route("/regulations/<regulation_id>", methods=["GET"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def get_regulation(regulation_id: str) -> Any:
    regulation = regulation_service.get_regulation(current_actor(), regulation_id)
    return json_response({"regulation": regulation.to_dict()})


@admin_bp.route("/regulations/<regulation_id>", methods=["PATCH"])
@login_required
@role_required(UserRole.ADMIN)
def update_regulation(regulation_id: str) -> Any:
    changes = {
        k: v for k, v in _json_body().items()
        if k in ("name", "version") + regulation_service.CONTENT_FIELDS
    }
    regulation = regulation_service.update_regulation(current_actor(), regulation_id, changes)
    return json_response({"regulation": regulation.to_dict()})


@admin_bp.route("/regulations/<regulation_id>/activate", methods=["POST"])
@login_required
@role_required(UserRole.ADMIN)
def activate_regulation(regulation_id: str) -> Any:
    regulation = regulation_service.activate_regulation(current_actor(), regulation_id)
    return json_response({"regulation": regulation.to_dict()})


@admin_bp.route("/regulations/<regulation_id>", methods=["DELETE"])
@login_required
@role_required(UserRole.ADMIN)
def delete_regulation(regulation_id: str) -> Any:
    regulation_service.delete_regulation(current_actor(), regulation_id)
    return json_response({"deleted": regulation_id})


@admin_bp.route("/documents/regulation", methods=["POST"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def regulation_document() -> Any:
    form = RegulationDocumentForm()
    if not form.validate():
        return json_response(form_errors(form), status=400)

    document = document_service.generate_regulation_document(
        current_actor(), form.regulation_id.data or None, form.format.data
    )
    return json_response({"document": document.to_dict()}, status=201)
