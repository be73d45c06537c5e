# app/core/errors.py
"""
Error taxonomy for the payout service.

Every domain failure carries an HTTP status and a machine-readable code.
The FastAPI handlers in app.main render them as
{"error": <code>, "code": <code>, "message": <message>, ...extra}.
"""
from typing import Any, Dict, Optional


class PayoutError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.code, "code": self.code, "message": self.message}
        body.update(self.extra)
        return body


class ValidationError(PayoutError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthorizationError(PayoutError):
    status_code = 403
    code = "FORBIDDEN"


class RailMismatchError(AuthorizationError):
    """The organizer's payout rail does not allow this endpoint."""

    status_code = 400
    code = "RAIL_MISMATCH"


class NotFoundError(PayoutError):
    status_code = 404
    code = "NOT_FOUND"


class VerificationRequiredError(PayoutError):
    status_code = 403
    code = "PAYOUT_CHANGE_VERIFICATION_REQUIRED"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message, code=code, extra={"requiresVerification": True})


class InsufficientBalanceError(PayoutError):
    status_code = 400
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, available_cents: int, requested_cents: int):
        super().__init__(
            f"Insufficient balance. Available: {available_cents} cents",
            extra={
                "availableCents": available_cents,
                "requestedCents": requested_cents,
            },
        )
        self.available_cents = available_cents


class SettlementNotReadyError(PayoutError):
    status_code = 400
    code = "SETTLEMENT_NOT_READY"


class ExternalRailError(PayoutError):
    status_code = 502
    code = "EXTERNAL_RAIL_ERROR"


class ConcurrencyConflictError(PayoutError):
    status_code = 409
    code = "CONCURRENT_UPDATE"
