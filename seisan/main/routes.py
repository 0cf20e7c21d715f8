"""Main application routes."""
from __future__ import annotations

from typing import Any

from sqlalchemy import text

from seisan import db
from seisan.utils.helpers import json_response

from . import main_bp


@main_bp.route("/health")
def health() -> Any:
    """Liveness check that also pings the database connection."""
    db.session.execute(text("SELECT 1"))
    return json_response({"status": "ok"})
