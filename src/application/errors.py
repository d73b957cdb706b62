from __future__ import annotations

from typing import Any, Mapping


class AppError(Exception):
    code = "app_error"
    status_code = 400

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = dict(self.details)
        return payload


class AuthError(AppError):
    code = "auth_error"
    status_code = 401


class PermissionDenied(AppError):
    code = "forbidden"
    status_code = 403


class NotFound(AppError):
    code = "not_found"
    status_code = 404


class ValidationError(AppError):
    code = "validation_error"
    status_code = 422


class InvalidTargetError(ValidationError):
    """Dispatch rejected before any side effect (missing or malformed target)."""

    code = "invalid_target"


class InfrastructureError(AppError):
    code = "infrastructure_error"
    status_code = 500


class PersistenceError(InfrastructureError):
    """The user-visible notification row could not be written."""

    code = "persistence_error"
