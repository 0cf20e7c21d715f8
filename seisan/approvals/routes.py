"""Approval queue and decision routes."""
from __future__ import annotations

from typing import Any

from flask_login import login_required

from seisan.forms import DecisionForm
from seisan.models import UserRole
from seisan.services import approval_engine
from seisan.utils.helpers import current_actor, form_errors, json_response, role_required

from . import approvals_bp


@approvals_bp.route("/pending", methods=["GET"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def pending() -> Any:
    applications = approval_engine.list_pending(current_actor())
    return json_response({"applications": [a.to_dict() for a in applications]})


@approvals_bp.route("/<application_id>/decision", methods=["POST"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def decide(application_id: str) -> Any:
    form = DecisionForm()
    if not form.validate():
        return json_response(form_errors(form), status=400)

    result = approval_engine.decide(current_actor(), application_id, form.action.data, form.comment.data)
    return json_response(result.to_dict())


@approvals_bp.route("/<application_id>/history", methods=["GET"])
@login_required
def history(application_id: str) -> Any:
    approvals = approval_engine.approval_history(current_actor(), application_id)
    return json_response({"approvals": [a.to_dict() for a in approvals]})
