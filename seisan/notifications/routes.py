"""Notification routes; clients poll ``GET /notifications?since=...``."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from flask import request
from flask_login import login_required

from seisan.services import notification_service
from seisan.services.errors import ValidationError
from seisan.utils.helpers import current_actor, json_response

from . import notifications_bp


def _since_arg():
    raw = request.args.get("since")
    if not raw:
        return None
    try:
        since = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError("'since' must be an ISO-8601 timestamp.", field="since") from None
    if since.tzinfo is not None:
        since = since.astimezone(timezone.utc).replace(tzinfo=None)
    return since


@notifications_bp.route("", methods=["GET"])
@login_required
def list_notifications() -> Any:
    notifications = notification_service.list_notifications(
        current_actor(),
        unread_only=request.args.get("unread") in ("1", "true"),
        since=_since_arg(),
        limit=min(request.args.get("limit", 50, type=int), 200),
    )
    return json_response({"notifications": [n.to_dict() for n in notifications]})


@notifications_bp.route("/unread-count", methods=["GET"])
@login_required
def unread_count() -> Any:
    return json_response({"unread": notification_service.unread_count(current_actor())})


@notifications_bp.route("/<notification_id>/read", methods=["POST"])
@login_required
def mark_read(notification_id: str) -> Any:
    notification = notification_service.mark_read(current_actor(), notification_id)
    return json_response({"notification": notification.to_dict()})


@notifications_bp.route("/read-all", methods=["POST"])
@login_required
def mark_all_read() -> Any:
    return json_response({"updated": notification_service.mark_all_read(current_actor())})


@notifications_bp.route("/<notification_id>", methods=["DELETE"])
@login_required
def delete(notification_id: str) -> Any:
    notification_service.delete_notification(current_actor(), notification_id)
    return json_response({"deleted": notification_id})
