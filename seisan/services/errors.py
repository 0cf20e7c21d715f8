"""Error taxonomy shared by the service layer."""
from __future__ import annotations

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for errors surfaced to the caller."""

    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message, "type": type(self).__name__}
        payload.update(self.details)
        return payload


class ValidationError(ServiceError):
    """Malformed input; never retried automatically."""

    status_code = 400


class PermissionDeniedError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    """Entity missing, deleted, or not visible to the caller."""

    status_code = 404


class InvalidStateError(ServiceError):
    """Operation not allowed from the entity's current state."""

    status_code = 409


class ConflictError(ServiceError):
    """A concurrent writer changed the entity first."""

    status_code = 409


class ConfigurationError(ServiceError):
    status_code = 422


class IntegrationFailure(ServiceError):
    """A remote service call failed. Caught at the adapter boundary."""

    status_code = 502

    def __init__(self, message: str, service: Optional[str] = None, **details: Any):
        super().__init__(message, service=service, **details)
        self.service = service
