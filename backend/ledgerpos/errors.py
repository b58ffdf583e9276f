# Overview: Typed error taxonomy for ledger operations and its HTTP translation.

"""
Ledger Error Taxonomy

Every processor either returns the persisted record(s) or raises one of the
errors below. When one of them escapes a processor the Ledger Store session
has already been rolled back, so stored state is exactly what it was before
the call.

HTTP mapping is carried on the class (http_status) so the route layer never
has to know which error it is translating.
"""

from __future__ import annotations

from flask import Flask, jsonify


class LedgerError(Exception):
    """Base class for all typed ledger failures."""

    code = "LEDGER_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class AuthorizationDenied(LedgerError):
    """The resolver returned False for the requested action."""

    code = "AUTHORIZATION_DENIED"
    http_status = 403

    def __init__(self, action: str, username: str | None = None, message: str | None = None):
        super().__init__(
            message or f"Action '{action}' is not permitted",
            details={"action": action, "username": username},
        )
        self.action = action


class InsufficientStock(LedgerError):
    """A deduction would drive a product's stock below zero."""

    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, product_id: int, product_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for '{product_name}': requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id


class InvalidQuantity(LedgerError):
    """Zero/negative quantity or a return exceeding the returnable quantity."""

    code = "INVALID_QUANTITY"
    http_status = 400


class OverpaymentRejected(LedgerError):
    """A payment or settlement would drive a remaining amount or debt negative."""

    code = "OVERPAYMENT_REJECTED"
    http_status = 409


class NoOpenShift(LedgerError):
    """A sale was attempted without an open shift for the actor."""

    code = "NO_OPEN_SHIFT"
    http_status = 409


class ConcurrencyConflict(LedgerError):
    """The store detected a serialization conflict; the whole request may be retried."""

    code = "CONCURRENCY_CONFLICT"
    http_status = 409

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["retryable"] = True
        return data


class StoreUnavailable(LedgerError):
    """Transport or infrastructure failure of the Ledger Store."""

    code = "STORE_UNAVAILABLE"
    http_status = 503


class ValidationFailed(LedgerError):
    """Malformed request (bad discount, missing lines, unknown option)."""

    code = "VALIDATION_FAILED"
    http_status = 400


class NotFound(LedgerError):
    code = "NOT_FOUND"
    http_status = 404


class ShiftStateError(LedgerError):
    """Shift lifecycle violation (second open shift, closing a closed shift)."""

    code = "SHIFT_STATE"
    http_status = 409


class SupplierHasDebt(LedgerError):
    code = "SUPPLIER_HAS_DEBT"
    http_status = 409


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        if exc.http_status >= 500:
            app.logger.error("Ledger store failure: %s", exc.message)
        return jsonify(exc.to_dict()), exc.http_status
