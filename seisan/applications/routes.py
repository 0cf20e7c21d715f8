"""Owner-facing application routes."""
from __future__ import annotations

from typing import Any, Dict

from flask import request
from flask_login import login_required

from seisan.forms import ApplicationForm, DocumentForm
from seisan.services import application_service, document_service, ocr_service
from seisan.services.errors import ValidationError
from seisan.utils.helpers import current_actor, form_errors, json_response

from . import applications_bp


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


@applications_bp.route("", methods=["GET"])
@login_required
def list_applications() -> Any:
    applications = application_service.list_applications(
        current_actor(),
        status=request.args.get("status"),
        app_type=request.args.get("type"),
        organization_wide=request.args.get("scope") == "organization",
    )
    return json_response({"applications": [a.to_dict() for a in applications]})


@applications_bp.route("", methods=["POST"])
@login_required
def create_application() -> Any:
    form = ApplicationForm()
    if not form.validate():
        return json_response(form_errors(form), status=400)

    body = _json_body()
    payload = dict(body.get("data") or {})
    payload["description"] = form.description.data
    for key in ("expense_items", "trip"):
        if body.get(key):
            payload[key] = body[key]

    application = application_service.create_application(
        current_actor(), form.type.data, form.title.data, payload
    )
    return json_response({"application": application.to_dict(include_children=True)}, status=201)


@applications_bp.route("/<application_id>", methods=["GET"])
@login_required
def get_application(application_id: str) -> Any:
    application = application_service.get_application(current_actor(), application_id)
    return json_response({"application": application.to_dict(include_children=True)})


@applications_bp.route("/<application_id>", methods=["PATCH"])
@login_required
def update_application(application_id: str) -> Any:
    fields = {k: v for k, v in _json_body().items() if k in ("title", "description", "data")}
    application = application_service.update_application(current_actor(), application_id, fields)
    return json_response({"application": application.to_dict(include_children=True)})


@applications_bp.route("/<application_id>", methods=["DELETE"])
@login_required
def delete_application(application_id: str) -> Any:
    application_service.delete_application(current_actor(), application_id)
    return json_response({"deleted": application_id})


@applications_bp.route("/<application_id>/submit", methods=["POST"])
@login_required
def submit_application(application_id: str) -> Any:
    application = application_service.submit_application(current_actor(), application_id)
    return json_response({"application": application.to_dict()})


@applications_bp.route("/<application_id>/items", methods=["POST"])
@login_required
def add_item(application_id: str) -> Any:
    item = application_service.add_expense_item(current_actor(), application_id, _json_body())
    return json_response({"item": item.to_dict(), "total_amount": float(item.application.total_amount)}, status=201)


@applications_bp.route("/<application_id>/items/<item_id>", methods=["PATCH"])
@login_required
def update_item(application_id: str, item_id: str) -> Any:
    item = application_service.update_expense_item(current_actor(), application_id, item_id, _json_body())
    return json_response({"item": item.to_dict(), "total_amount": float(item.application.total_amount)})


@applications_bp.route("/<application_id>/items/<item_id>", methods=["DELETE"])
@login_required
def delete_item(application_id: str, item_id: str) -> Any:
    total = application_service.delete_expense_item(current_actor(), application_id, item_id)
    return json_response({"deleted": item_id, "total_amount": float(total)})


@applications_bp.route("/<application_id>/items/<item_id>/receipt", methods=["POST"])
@login_required
def upload_receipt(application_id: str, item_id: str) -> Any:
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise ValidationError("A receipt file is required.", field="file")

    item = ocr_service.attach_receipt(
        current_actor(),
        application_id,
        item_id,
        upload.read(),
        upload.filename,
        upload.mimetype,
    )
    return json_response({"item": item.to_dict(), "total_amount": float(item.application.total_amount)})


@applications_bp.route("/<application_id>/trip", methods=["PUT"])
@login_required
def set_trip(application_id: str) -> Any:
    detail = application_service.set_trip_detail(current_actor(), application_id, _json_body())
    return json_response({"trip": detail.to_dict(), "total_amount": float(detail.application.total_amount)})


@applications_bp.route("/<application_id>/documents", methods=["POST"])
@login_required
def generate_document(application_id: str) -> Any:
    form = DocumentForm()
    if not form.validate():
        return json_response(form_errors(form), status=400)

    document = document_service.generate_application_document(
        current_actor(), application_id, form.type.data, form.format.data
    )
    return json_response({"document": document.to_dict()}, status=201)
