"""Web push channel backed by an HTTP push gateway."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from flask import current_app

from seisan.services.errors import ConfigurationError, IntegrationFailure

logger = logging.getLogger(__name__)


def send_push(user_id: str, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """POST one push message to ``PUSH_SERVICE_URL``.

    Raises ConfigurationError when no gateway is configured and
    IntegrationFailure when the gateway call fails.
    """
    url = current_app.config.get("PUSH_SERVICE_URL")
    if not url:
        raise ConfigurationError("Push service is not configured.", service="push")

    payload = {
        "user_id": user_id,
        "title": title,
        "body": body,
        "icon": "/icon-192x192.png",
        "badge": "/badge-72x72.png",
        "data": data or {},
        "actions": [{"action": "view", "title": "確認する"}],
    }
    headers = {"Content-Type": "application/json"}
    api_key = current_app.config.get("PUSH_API_KEY")
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    try:
        response = requests.post(
            url, json=payload, headers=headers, timeout=current_app.config["EXTERNAL_HTTP_TIMEOUT"]
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        raise IntegrationFailure(f"Push delivery failed: {exc}", service="push") from exc

    logger.info(f"Push notification sent to user {user_id}")
    try:
        return response.json()
    except ValueError:
        return {"status": "sent"}
