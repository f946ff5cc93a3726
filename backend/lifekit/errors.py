"""Domain error types.

Every error carries a machine-stable ``kind`` and the HTTP status it maps to.
Handlers in ``lifekit.main`` render them as ``{"error": {"kind", "message"}}``.
"""
from __future__ import annotations


class ServiceError(Exception):
    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": {"kind": self.kind, "message": self.message}}


class ValidationError(ServiceError):
    """Missing or malformed input. Never retried."""
    kind = "validation_error"
    status_code = 400


class InvalidAmount(ValidationError):
    kind = "invalid_amount"


class NotFoundOrUnauthorized(ServiceError):
    """Missing and forbidden collapse into one 404 so existence does not leak."""
    kind = "not_found"
    status_code = 404

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found or unauthorized")


class ForbiddenAction(ServiceError):
    kind = "forbidden"
    status_code = 403


class InsufficientFunds(ServiceError):
    kind = "insufficient_funds"
    status_code = 402

    def __init__(self, message: str = "Insufficient wallet balance. Please add money."):
        super().__init__(message)


class ConflictingState(ServiceError):
    kind = "conflicting_state"
    status_code = 409


class DependencyFailure(ServiceError):
    """Storage or payment processor failed. Safe for the client to retry the whole request."""
    kind = "dependency_failure"
    status_code = 500


HTTP_STATUS_KINDS = {
    400: ValidationError.kind,
    401: "unauthorized",
    402: InsufficientFunds.kind,
    403: ForbiddenAction.kind,
    404: NotFoundOrUnauthorized.kind,
    405: "method_not_allowed",
    409: ConflictingState.kind,
}
