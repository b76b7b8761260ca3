from __future__ import annotations

from typing import Any


class LifecycleError(ValueError):
    """Base class for domain failures raised by the lifecycle services."""

    status_code = 400
    default_code = "lifecycle_error"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}


class ValidationError(LifecycleError):
    status_code = 400
    default_code = "validation_error"


class InvalidTransition(LifecycleError):
    status_code = 409
    default_code = "invalid_transition"


class NotFound(LifecycleError):
    status_code = 404
    default_code = "not_found"


class PlanNotFound(NotFound):
    default_code = "plan_not_found"


class AuthorizationError(LifecycleError):
    status_code = 403
    default_code = "forbidden"


class OverpaymentError(LifecycleError):
    status_code = 400
    default_code = "overpayment"


class AlreadySettled(LifecycleError):
    status_code = 409
    default_code = "already_settled"
