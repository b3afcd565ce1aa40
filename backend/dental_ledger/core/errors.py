"""Domain errors raised by the ledger services.

Each error carries a stable ``code`` that API clients switch on, the HTTP
status it maps to, and whether the caller can simply retry (after
re-fetching fresh state) or has to change its input.
"""

from __future__ import annotations

from fastapi import status


class LedgerError(Exception):
    code = "LedgerError"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False
    default_detail = "Request could not be processed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_payload(self) -> dict:
        return {"detail": self.detail, "code": self.code, "retryable": self.retryable}


class NotFound(LedgerError):
    code = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class LedgerValidationError(LedgerError):
    code = "ValidationError"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Invalid input"


class InvalidTooth(LedgerValidationError):
    code = "InvalidTooth"
    default_detail = "Tooth record does not belong to this odontogram"


class UnknownTreatmentCode(LedgerValidationError):
    code = "UnknownTreatmentCode"
    default_detail = "Treatment code not found in catalog"


class EmptySelection(LedgerValidationError):
    code = "EmptySelection"
    default_detail = "No eligible treatments to invoice"


class OverpaymentRejected(LedgerValidationError):
    code = "OverpaymentRejected"
    default_detail = "Payment exceeds the outstanding balance"


class InvalidState(LedgerError):
    code = "InvalidState"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation not allowed in the current state"


class DuplicateSurface(InvalidState):
    code = "DuplicateSurface"
    default_detail = "Surface already has an active condition"


class DuplicateActiveOdontogram(InvalidState):
    code = "DuplicateActiveOdontogram"
    default_detail = "Patient already has a current odontogram"


class InvoiceNotPayable(InvalidState):
    code = "InvoiceNotPayable"
    default_detail = "Invoice does not accept payments"


class AlreadyCancelled(InvalidState):
    code = "AlreadyCancelled"
    default_detail = "Invoice is already cancelled"


class AlreadyPaid(InvalidState):
    code = "AlreadyPaid"
    default_detail = "Paid invoices cannot be cancelled"


class ConcurrentModification(LedgerError):
    code = "ConcurrentModification"
    status_code = status.HTTP_409_CONFLICT
    retryable = True
    default_detail = "Record was modified by another session; reload and retry"


class StaleLine(ConcurrentModification):
    code = "StaleLine"
    default_detail = "Treatment already claimed by another invoice; refresh the preview"


class CollaboratorUnavailable(LedgerError):
    code = "CollaboratorUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
    default_detail = "Upstream service unavailable"
