"""
Shift lifecycle and drawer reconciliation tests.

Verifies:
- Expected balance = opening + tagged treasury movements
- Close snapshot (expected, actual, difference) is frozen
- One open shift per user, closed is terminal
"""

import pytest

from ledgerpos.errors import NoOpenShift, NotFound, ShiftStateError, ValidationFailed
from ledgerpos.models import Shift
from ledgerpos.services import expense_service, return_service, sales_service, shift_service
from ledgerpos.services.commands import ReturnLineRequest, SaleLineRequest, SaleRequest, SalesReturnRequest


def sell(actor, product, quantity):
    return sales_service.process_sale(
        actor=actor, request=SaleRequest(lines=[SaleLineRequest(product_id=product.id, quantity=quantity)])
    )


class TestReconciliation:

    def test_close_records_shortage(self, seed, product_factory, cashier_shift):
        tablet = product_factory("Tablet", stock=5, retail=15000)
        sell(seed.cashier, tablet, 2)

        closed = shift_service.close_shift(actor=seed.cashier, shift_id=cashier_shift.id, actual_cents=79000)

        assert closed.status == "closed"
        assert closed.expected_cents == 80000
        assert closed.actual_cents == 79000
        assert closed.difference_cents == -1000
        assert closed.closed_at is not None

    def test_exact_count(self, seed, product, cashier_shift):
        sell(seed.cashier, product, 1)
        closed = shift_service.close_shift(actor=seed.cashier, shift_id=cashier_shift.id, actual_cents=51500)
        assert closed.difference_cents == 0

    def test_returns_and_expenses_lower_expected(self, seed, product, cashier_shift):
        invoice = sell(seed.cashier, product, 3)
        return_service.process_sales_return(
            actor=seed.cashier,
            request=SalesReturnRequest(
                invoice_id=invoice.id, lines=[ReturnLineRequest(line_id=invoice.lines[0].id, quantity=1)]
            ),
        )
        expense_service.record_expense(actor=seed.cashier, description="Cleaning", amount_cents=700)

        shift = shift_service.get_shift(cashier_shift.id)
        assert shift_service.expected_balance_cents(shift) == 50000 + 4500 - 1500 - 700

        summary = shift_service.shift_summary(cashier_shift.id)
        assert summary["sales_count"] == 1
        assert summary["sales_total_cents"] == 4500
        assert summary["returns_total_cents"] == 1500
        assert summary["expenses_total_cents"] == 700
        assert summary["treasury_by_source"] == {"sale": 4500, "sales_return": -1500, "expense": -700}
        assert summary["expected_cents"] == 52300
        assert summary["actual_cents"] is None

    def test_other_shifts_do_not_leak(self, seed, product, cashier_shift):
        shift_service.open_shift(actor=seed.admin, opening_cents=0)
        sell(seed.admin, product, 2)
        shift = shift_service.get_shift(cashier_shift.id)
        assert shift_service.expected_balance_cents(shift) == 50000

    def test_snapshot_is_frozen(self, seed, product, cashier_shift):
        invoice = sell(seed.cashier, product, 1)
        shift_service.close_shift(actor=seed.cashier, shift_id=cashier_shift.id, actual_cents=51500)

        sales_service.delete_invoice(actor=seed.manager, invoice_id=invoice.id, reason="late void")

        summary = shift_service.shift_summary(cashier_shift.id)
        assert summary["expected_cents"] == 51500
        assert summary["difference_cents"] == 0
        assert summary["treasury_by_source"] == {"sale": 1500}


class TestShiftLifecycle:

    def test_one_open_shift_per_user(self, seed, cashier_shift):
        with pytest.raises(ShiftStateError):
            shift_service.open_shift(actor=seed.cashier, opening_cents=100)

    def test_new_shift_after_close(self, seed, cashier_shift, db_session):
        shift_service.close_shift(actor=seed.cashier, shift_id=cashier_shift.id, actual_cents=50000)
        reopened = shift_service.open_shift(actor=seed.cashier, opening_cents=100)
        assert reopened.id != cashier_shift.id
        assert db_session.query(Shift).filter_by(user_id=seed.cashier.id).count() == 2

    def test_closed_is_terminal(self, seed, cashier_shift):
        shift_service.close_shift(actor=seed.cashier, shift_id=cashier_shift.id, actual_cents=50000)
        with pytest.raises(ShiftStateError):
            shift_service.close_shift(actor=seed.cashier, shift_id=cashier_shift.id, actual_cents=50000)

    def test_only_owner_or_super_admin_closes(self, seed, cashier_shift):
        with pytest.raises(ShiftStateError):
            shift_service.close_shift(actor=seed.manager, shift_id=cashier_shift.id, actual_cents=0)
        closed = shift_service.close_shift(actor=seed.admin, shift_id=cashier_shift.id, actual_cents=50000)
        assert closed.status == "closed"

    def test_no_open_shift_after_close(self, seed, cashier_shift):
        shift_service.close_shift(actor=seed.cashier, shift_id=cashier_shift.id, actual_cents=50000)
        with pytest.raises(NoOpenShift):
            shift_service.require_open_shift(seed.cashier)

    def test_negative_amounts_rejected(self, seed, cashier_shift):
        with pytest.raises(ValidationFailed):
            shift_service.open_shift(actor=seed.manager, opening_cents=-1)
        with pytest.raises(ValidationFailed):
            shift_service.close_shift(actor=seed.cashier, shift_id=cashier_shift.id, actual_cents=-1)

    def test_unknown_shift(self, seed):
        with pytest.raises(NotFound):
            shift_service.close_shift(actor=seed.cashier, shift_id=99999, actual_cents=0)
