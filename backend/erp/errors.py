# Overview: Error taxonomy shared by every ledger and workflow service.

"""
Every business rule violation raised by the services is a LedgerError.

Each subclass carries a stable ``kind`` (returned to callers verbatim) and the
HTTP status the request boundary maps it to. Services raise these before the
first write of a workflow; the surrounding transaction is rolled back on any
error, so a raised LedgerError never leaves a partial state behind.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for business errors surfaced to callers."""

    kind = "LedgerError"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(LedgerError):
    """400-level input problem caught before any side effect."""
    kind = "ValidationError"
    status_code = 400


class NotFoundError(LedgerError):
    kind = "NotFound"
    status_code = 404


class SaleNotFoundError(NotFoundError):
    pass


class InsufficientStockError(LedgerError):
    kind = "InsufficientStock"
    status_code = 409


class CreditLimitExceededError(LedgerError):
    kind = "CreditLimitExceeded"
    status_code = 409


class CreditCustomerRequiredError(LedgerError):
    kind = "CreditCustomerRequired"
    status_code = 400


class PaymentExceedsBalanceError(LedgerError):
    kind = "PaymentExceedsBalance"
    status_code = 409


class AccountAlreadyPaidError(LedgerError):
    kind = "AccountAlreadyPaid"
    status_code = 409


class AccountHasPaymentsError(LedgerError):
    kind = "AccountHasPayments"
    status_code = 409


# Raised by sale cancellation; same kind as cancelling the account directly.
CreditAccountHasPaymentsError = AccountHasPaymentsError


class SaleNotFromTodayError(LedgerError):
    kind = "SaleNotFromToday"
    status_code = 409


class SaleAlreadyCancelledError(LedgerError):
    kind = "SaleAlreadyCancelled"
    status_code = 409


class PurchaseAlreadyCancelledError(LedgerError):
    kind = "PurchaseAlreadyCancelled"
    status_code = 409


class PurchaseTooOldToEditError(LedgerError):
    kind = "PurchaseTooOldToEdit"
    status_code = 409


class NotAuthorizedForTransferError(LedgerError):
    kind = "NotAuthorizedForTransfer"
    status_code = 403


class InvalidTransferStateError(LedgerError):
    kind = "InvalidTransferState"
    status_code = 409
