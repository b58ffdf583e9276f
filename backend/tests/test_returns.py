"""
Return processor tests.

Verifies:
- Returnable quantity limits per line, across multiple returns
- Refund total equals the sum of its lines, discounted invoices included
- Zero/negative quantity rejection
- Purchase returns: cash (deferred or received) and debt deduction
"""

from decimal import Decimal

import pytest

from ledgerpos.errors import InsufficientStock, InvalidQuantity, NotFound, OverpaymentRejected, ValidationFailed
from ledgerpos.models import Product, PurchaseRecord, ReturnRecord, TreasuryLog
from ledgerpos.services import purchase_service, return_service, sales_service, shift_service
from ledgerpos.services.commands import DiscountRequest, PurchaseLineRequest, PurchaseRequest, PurchaseReturnRequest
from ledgerpos.services.commands import ReturnLineRequest, SaleLineRequest, SaleRequest, SalesReturnRequest


def sell(actor, product, quantity, discount=None):
    return sales_service.process_sale(
        actor=actor,
        request=SaleRequest(
            lines=[SaleLineRequest(product_id=product.id, quantity=quantity)],
            discount=discount or DiscountRequest(),
        ),
    )


def customer_return(actor, invoice, quantity, line_id=None):
    return return_service.process_sales_return(
        actor=actor,
        request=SalesReturnRequest(
            invoice_id=invoice.id,
            lines=[ReturnLineRequest(line_id=line_id or invoice.lines[0].id, quantity=quantity)],
        ),
    )


# =============================================================================
# SALES RETURNS
# =============================================================================


class TestSalesReturns:

    def test_return_restocks_and_refunds(self, seed, product, cashier_shift, db_session):
        invoice = sell(seed.cashier, product, 3)
        record = customer_return(seed.cashier, invoice, 1)

        assert record.total_refund_cents == 1500
        assert record.shift_id == cashier_shift.id
        assert record.lines[0].unit_price_cents == 1500
        assert record.lines[0].cost_cents_at_sale == 1000
        assert db_session.get(Product, product.id).stock == 3

        log = db_session.query(TreasuryLog).filter_by(source="sales_return").one()
        assert log.direction == "out"
        assert log.amount_cents == 1500
        assert log.shift_id == cashier_shift.id
        assert log.branch_id == seed.main.id

    def test_cannot_return_more_than_sold(self, seed, product, cashier_shift, db_session):
        invoice = sell(seed.cashier, product, 3)
        with pytest.raises(InvalidQuantity):
            customer_return(seed.cashier, invoice, 4)
        assert db_session.get(Product, product.id).stock == 2

    def test_returnable_quantity_spans_returns(self, seed, product, cashier_shift, db_session):
        invoice = sell(seed.cashier, product, 3)
        customer_return(seed.cashier, invoice, 2)
        customer_return(seed.cashier, invoice, 1)

        with pytest.raises(InvalidQuantity) as exc_info:
            customer_return(seed.cashier, invoice, 1)
        assert exc_info.value.details["returnable"] == 0
        assert db_session.get(Product, product.id).stock == 5
        assert sales_service.returned_quantities(invoice.id) == {invoice.lines[0].id: 3}

    def test_zero_total_quantity_rejected(self, seed, product, cashier_shift, db_session):
        invoice = sell(seed.cashier, product, 2)
        with pytest.raises(InvalidQuantity):
            customer_return(seed.cashier, invoice, 0)
        assert db_session.query(ReturnRecord).count() == 0

    def test_negative_quantity_rejected(self):
        with pytest.raises(InvalidQuantity):
            SalesReturnRequest.from_dict({"invoice_id": 1, "lines": [{"line_id": 1, "quantity": -1}]})

    def test_foreign_line_rejected(self, seed, product, product_factory, cashier_shift):
        first = sell(seed.cashier, product, 1)
        other = sell(seed.cashier, product_factory("Stylus", stock=2), 1)
        with pytest.raises(ValidationFailed):
            customer_return(seed.cashier, first, 1, line_id=other.lines[0].id)

    def test_discounted_invoice_refunds_line_totals(self, seed, product, cashier_shift, db_session):
        invoice = sell(seed.cashier, product, 2, DiscountRequest(type="fixed", value=Decimal("1000")))
        assert invoice.net_cents == 2000

        record = customer_return(seed.cashier, invoice, 2)

        assert record.total_refund_cents == sum(line.refund_cents for line in record.lines) == 3000
        log = db_session.query(TreasuryLog).filter_by(source="sales_return").one()
        assert log.amount_cents == 3000
        shift = shift_service.get_shift(cashier_shift.id)
        assert shift_service.expected_balance_cents(shift) == 50000 + 2000 - 3000

    def test_return_without_open_shift_books_to_invoice_branch(self, seed, product, cashier_shift, db_session):
        invoice = sell(seed.cashier, product, 2)
        record = customer_return(seed.manager, invoice, 1)

        assert record.shift_id is None
        log = db_session.query(TreasuryLog).filter_by(source="sales_return").one()
        assert log.shift_id is None
        assert log.branch_id == invoice.branch_id

    def test_deleted_invoice_not_returnable(self, seed, product, cashier_shift):
        invoice = sell(seed.cashier, product, 2)
        sales_service.delete_invoice(actor=seed.manager, invoice_id=invoice.id, reason="void")
        with pytest.raises(NotFound):
            customer_return(seed.cashier, invoice, 1)


# =============================================================================
# PURCHASE RETURNS
# =============================================================================


class TestPurchaseReturns:

    @pytest.fixture
    def purchase(self, seed, product, supplier):
        """10 units at 20.00, 100.00 paid, 100.00 owing."""
        return purchase_service.process_purchase(
            actor=seed.manager,
            request=PurchaseRequest(
                supplier_id=supplier.id,
                lines=[PurchaseLineRequest(product_id=product.id, quantity=10, cost_cents=2000)],
                paid_cents=10000,
            ),
        )

    def _return(self, seed, purchase, quantity, **kwargs):
        return return_service.process_purchase_return(
            actor=seed.manager,
            request=PurchaseReturnRequest(
                purchase_id=purchase.id,
                lines=[ReturnLineRequest(line_id=purchase.lines[0].id, quantity=quantity)],
                **kwargs,
            ),
        )

    def test_cash_refund_deferred_until_received(self, seed, product, purchase, db_session):
        record = self._return(seed, purchase, 2, refund_method="cash")

        assert record.total_refund_cents == 4000
        assert record.is_money_received is False
        assert db_session.get(Product, product.id).stock == 13
        assert db_session.query(TreasuryLog).filter_by(source="purchase_return").count() == 0
        assert db_session.get(PurchaseRecord, purchase.id).remaining_cents == 10000

        return_service.mark_refund_received(actor=seed.manager, return_id=record.id)
        log = db_session.query(TreasuryLog).filter_by(source="purchase_return").one()
        assert log.direction == "in"
        assert log.amount_cents == 4000

        with pytest.raises(ValidationFailed):
            return_service.mark_refund_received(actor=seed.manager, return_id=record.id)

    def test_cash_refund_received_immediately(self, seed, purchase, db_session):
        record = self._return(seed, purchase, 1, refund_method="cash", is_money_received=True)
        assert record.is_money_received is True
        log = db_session.query(TreasuryLog).filter_by(source="purchase_return").one()
        assert log.amount_cents == 2000

    def test_debt_deduction(self, seed, purchase, db_session):
        record = self._return(seed, purchase, 3, refund_method="debt_deduction")

        refreshed = db_session.get(PurchaseRecord, purchase.id)
        assert refreshed.remaining_cents == 4000
        assert refreshed.settlement_status == "partial"
        assert db_session.query(TreasuryLog).filter_by(source="purchase_return").count() == 0

        with pytest.raises(ValidationFailed):
            return_service.mark_refund_received(actor=seed.manager, return_id=record.id)

    def test_debt_deduction_above_remaining_rejected(self, seed, product, purchase, db_session):
        with pytest.raises(OverpaymentRejected):
            self._return(seed, purchase, 6, refund_method="debt_deduction")
        assert db_session.get(Product, product.id).stock == 15
        assert db_session.get(PurchaseRecord, purchase.id).remaining_cents == 10000

    def test_cannot_return_more_than_purchased(self, seed, purchase):
        self._return(seed, purchase, 8)
        with pytest.raises(InvalidQuantity):
            self._return(seed, purchase, 3)

    def test_cannot_return_sold_goods(self, seed, product_factory, supplier, cashier_shift):
        item = product_factory("Power Bank", stock=0)
        purchase = purchase_service.process_purchase(
            actor=seed.manager,
            request=PurchaseRequest(
                supplier_id=supplier.id,
                lines=[PurchaseLineRequest(product_id=item.id, quantity=2, cost_cents=1000)],
            ),
        )
        sell(seed.cashier, item, 2)
        with pytest.raises(InsufficientStock):
            self._return(seed, purchase, 1)

    def test_unknown_refund_method(self):
        with pytest.raises(ValidationFailed):
            PurchaseReturnRequest.from_dict(
                {"purchase_id": 1, "refund_method": "store_credit", "lines": [{"line_id": 1, "quantity": 1}]}
            )
