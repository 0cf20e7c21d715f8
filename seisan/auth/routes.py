"""Authentication routes."""
from __future__ import annotations

import logging
from typing import Any

from flask import request
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from seisan.forms import LoginForm
from seisan.models import User
from seisan.utils.helpers import form_errors, json_response

from . import auth_bp

logger = logging.getLogger(__name__)


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token() -> Any:
    """Token to send back in the ``X-CSRFToken`` header."""
    return json_response({"csrf_token": generate_csrf()})


@auth_bp.route("/login", methods=["POST"])
def login() -> Any:
    form = LoginForm()
    if not form.validate():
        return json_response(form_errors(form), status=400)

    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if user is None or not user.is_active or not user.check_password(form.password.data):
        logger.info(f"Failed login for {form.email.data} from {request.remote_addr}")
        return json_response({"error": "Invalid email or password."}, status=401)

    login_user(user, remember=bool((request.get_json(silent=True) or {}).get("remember")))
    logger.info(f"User {user.id} logged in")
    return json_response({"user": user.to_dict()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout() -> Any:
    logout_user()
    return json_response({"message": "Logged out."})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me() -> Any:
    return json_response({"user": current_user.to_dict()})
