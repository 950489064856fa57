"""
Typed outcomes for expected business failures.

Every error carries the HTTP status and machine code the API layer returns;
routers never translate them by hand. Infrastructure failures (database down)
are not LoanServiceError and surface as an opaque 503.
"""
from __future__ import annotations

from typing import Any


class LoanServiceError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "error": self.code}
        if self.context:
            body["context"] = self.context
        return body


class ValidationError(LoanServiceError):
    status_code = 422
    code = "validation_error"


class NotFoundError(LoanServiceError):
    status_code = 404
    code = "not_found"


class InvalidStateError(LoanServiceError):
    status_code = 409
    code = "invalid_state"


class ImmutableStateError(InvalidStateError):
    code = "immutable_state"


class InvalidLoanStateError(InvalidStateError):
    code = "invalid_loan_state"


class LoanNotActiveError(InvalidStateError):
    code = "loan_not_active"


class TokenNotUsableError(InvalidStateError):
    """QR token exists but is expired or no longer active. `reason` is "expired" or "invalid_status"."""

    code = "token_not_usable"

    def __init__(self, message: str, reason: str, **context: Any):
        super().__init__(message, reason=reason, **context)
        self.reason = reason


class AlreadyProcessedError(InvalidStateError):
    code = "already_processed"


class EligibilityError(LoanServiceError):
    status_code = 422
    code = "not_eligible"

    def __init__(self, message: str, reasons: list[str] | None = None):
        super().__init__(message, reasons=list(reasons or []))
        self.reasons = list(reasons or [])


class GuarantorRequirementNotMetError(LoanServiceError):
    status_code = 422
    code = "guarantor_requirement_not_met"

    def __init__(self, required: int, actual: int):
        super().__init__(
            f"Loan requires {required} active guarantor(s) but has {actual}",
            required=required,
            actual=actual,
        )
        self.required = required
        self.actual = actual


class AuthorizationError(LoanServiceError):
    status_code = 403
    code = "forbidden"


class NotAGuarantorError(AuthorizationError):
    code = "not_a_guarantor"


class ConcurrencyConflictError(LoanServiceError):
    status_code = 409
    code = "concurrency_conflict"


class DuplicatePendingInvitationError(LoanServiceError):
    status_code = 409
    code = "duplicate_pending_invitation"
