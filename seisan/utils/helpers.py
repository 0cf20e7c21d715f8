"""General helper utilities."""
from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable

from flask import Flask, jsonify, request
from flask_login import current_user
from werkzeug.exceptions import HTTPException

from seisan.models import UserRole
from seisan.services.context import Actor
from seisan.services.errors import ServiceError

JsonView = Callable[..., Any]

logger = logging.getLogger(__name__)


def json_response(payload: Any, status: int = 200):
    """Return a JSON response with status code."""
    return jsonify(payload), status


def current_actor() -> Actor:
    """Actor for the logged-in user of the current request."""
    return Actor.from_user(current_user, ip_address=request.remote_addr)


def role_required(*roles: UserRole):
    """Restrict a route to one or more roles."""
    def decorator(view_func: JsonView) -> JsonView:
        @wraps(view_func)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                return json_response({"error": "Authentication required."}, status=401)
            if current_user.role not in roles:
                return json_response({"error": "Insufficient permissions."}, status=403)
            return view_func(*args, **kwargs)

        return wrapped

    return decorator


def form_errors(form) -> dict:
    """Flatten WTForms errors into the standard error body."""
    return {
        "error": "Invalid input.",
        "type": "ValidationError",
        "fields": {name: messages for name, messages in form.errors.items()},
    }


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ServiceError)
    def handle_service_error(exc: ServiceError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.path}: {exc.message}")
        return json_response(exc.to_dict(), status=exc.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return json_response({"error": exc.description, "type": exc.name}, status=exc.code or 500)
