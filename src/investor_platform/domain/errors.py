"""Error taxonomy shared by services and routes.

Every error carries the HTTP status and machine-readable code the API
returns for it, so routes never translate exceptions by hand.
"""


class PlatformError(Exception):
    """Base class for all domain errors surfaced through the API."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)

    def to_payload(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class ValidationError(PlatformError):
    """Malformed or out-of-range input. Never retried automatically."""

    status_code = 400
    code = "validation_error"


class PaymentDeclined(ValidationError):
    """The payment processor refused the charge."""

    status_code = 402
    code = "payment_declined"


class Unauthenticated(PlatformError):
    """Missing, unknown or expired session."""

    status_code = 401
    code = "unauthenticated"


class Forbidden(PlatformError):
    """Valid session, but wrong role, inactive account or not the owner."""

    status_code = 403
    code = "forbidden"


class SubscriptionRequired(PlatformError):
    """Valid session and role, but no foreclosure entitlement."""

    status_code = 403
    code = "subscription_required"

    def __init__(self, detail: str = "Foreclosure subscription required"):
        super().__init__(detail)

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["subscription_required"] = True
        return payload


class NotFound(PlatformError):
    """Referenced entity does not exist."""

    status_code = 404
    code = "not_found"


class IllegalTransition(PlatformError):
    """Raised when a lifecycle state transition is not allowed."""

    status_code = 409
    code = "illegal_transition"

    def __init__(self, current_status: str, target_status: str, reason: str):
        self.current_status = current_status
        self.target_status = target_status
        self.reason = reason
        super().__init__(
            f"Invalid transition from {current_status} to {target_status}: {reason}"
        )

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["current_status"] = self.current_status
        payload["target_status"] = self.target_status
        return payload


class DependencyFailure(PlatformError):
    """Persistence or payment collaborator unavailable. Safe to retry."""

    status_code = 503
    code = "dependency_failure"

    def __init__(self, detail: str = "Service temporarily unavailable, please retry"):
        super().__init__(detail)
