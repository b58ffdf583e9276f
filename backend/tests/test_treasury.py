"""
Treasury log and expense tests.
"""

from datetime import timedelta

import pytest

from ledgerpos.errors import AuthorizationDenied, ValidationFailed
from ledgerpos.models import ArchiveRecord, TreasuryLog
from ledgerpos.services import expense_service, shift_service, treasury_service
from ledgerpos.time_utils import utcnow


class TestTreasuryLog:

    def test_zero_amount_records_nothing(self, seed, db_session):
        log = treasury_service.append_treasury_log(
            direction="in", source="sale", amount_cents=0, actor=seed.cashier, branch_id=seed.main.id
        )
        assert log is None
        db_session.commit()
        assert db_session.query(TreasuryLog).count() == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"direction": "sideways", "source": "sale", "amount_cents": 10},
            {"direction": "in", "source": "gift", "amount_cents": 10},
            {"direction": "in", "source": "sale", "amount_cents": -10},
        ],
    )
    def test_invalid_entries_rejected(self, seed, kwargs):
        with pytest.raises(ValidationFailed):
            treasury_service.append_treasury_log(actor=seed.cashier, branch_id=seed.main.id, **kwargs)

    def test_balance_is_signed_sum_per_branch(self, seed, db_session):
        for direction, amount, branch in [
            ("in", 5000, seed.main.id),
            ("out", 1200, seed.main.id),
            ("in", 3000, seed.north.id),
        ]:
            treasury_service.append_treasury_log(
                direction=direction, source="sale" if direction == "in" else "expense",
                amount_cents=amount, actor=seed.admin, branch_id=branch,
            )
        db_session.commit()

        assert treasury_service.drawer_balance(branch_id=seed.main.id) == 3800
        assert treasury_service.drawer_balance(branch_id=seed.north.id) == 3000
        assert treasury_service.drawer_balance() == 6800

        entries = treasury_service.treasury_entries(branch_id=seed.main.id, source="expense")
        assert [(e.direction, e.amount_cents, e.signed_amount_cents) for e in entries] == [("out", 1200, -1200)]

    def test_time_window(self, seed, db_session):
        treasury_service.append_treasury_log(
            direction="in", source="sale", amount_cents=100, actor=seed.admin, branch_id=seed.main.id
        )
        db_session.commit()
        now = utcnow()
        assert treasury_service.drawer_balance(start=now - timedelta(minutes=5)) == 100
        assert treasury_service.drawer_balance(end=now - timedelta(minutes=5)) == 0


class TestExpenses:

    def test_expense_tagged_with_open_shift(self, seed, cashier_shift, db_session):
        expense = expense_service.record_expense(actor=seed.cashier, description="Tea", amount_cents=300)

        assert expense.shift_id == cashier_shift.id
        log = db_session.query(TreasuryLog).filter_by(source="expense").one()
        assert log.direction == "out"
        assert log.amount_cents == 300
        assert log.shift_id == cashier_shift.id

    def test_expense_without_shift(self, seed, db_session):
        expense = expense_service.record_expense(actor=seed.manager, description="Courier", amount_cents=900)
        assert expense.shift_id is None
        assert treasury_service.drawer_balance(branch_id=seed.main.id) == -900

    def test_delete_reverses_into_open_shift(self, seed, cashier_shift, db_session):
        expense = expense_service.record_expense(actor=seed.cashier, description="Tea", amount_cents=300)
        expense_service.delete_expense(actor=seed.manager, expense_id=expense.id, reason="Personal")

        shift = shift_service.get_shift(cashier_shift.id)
        assert shift_service.expected_balance_cents(shift) == 50000
        assert expense_service.list_expenses(shift_id=cashier_shift.id) == []
        assert db_session.query(ArchiveRecord).filter_by(item_type="expense").count() == 1

    def test_delete_after_shift_closed_is_untagged(self, seed, cashier_shift, db_session):
        expense = expense_service.record_expense(actor=seed.cashier, description="Tea", amount_cents=300)
        shift_service.close_shift(actor=seed.cashier, shift_id=cashier_shift.id, actual_cents=49700)

        expense_service.delete_expense(actor=seed.manager, expense_id=expense.id, reason="Personal")

        reversal = db_session.query(TreasuryLog).filter_by(source="expense_reversal").one()
        assert reversal.direction == "in"
        assert reversal.shift_id is None
        assert shift_service.get_shift(cashier_shift.id).expected_cents == 49700

    def test_cashier_cannot_delete(self, seed, cashier_shift):
        expense = expense_service.record_expense(actor=seed.cashier, description="Tea", amount_cents=300)
        with pytest.raises(AuthorizationDenied):
            expense_service.delete_expense(actor=seed.cashier, expense_id=expense.id, reason="mine")

    @pytest.mark.parametrize("description,amount", [("", 100), ("Tea", 0), ("Tea", -5)])
    def test_invalid_expense(self, seed, description, amount):
        with pytest.raises(ValidationFailed):
            expense_service.record_expense(actor=seed.manager, description=description, amount_cents=amount)
