"""
Sale processor tests.

Verifies:
- Stock decrement, invoice and treasury entry commit together
- Insufficient stock on any line applies nothing
- Discount arithmetic (fixed cents, percentage with half-up rounding)
- Open shift and branch rules
- Invoice deletion compensates stock and cash
"""

from decimal import Decimal

import pytest

from ledgerpos.errors import AuthorizationDenied, InsufficientStock, NoOpenShift, NotFound, ValidationFailed
from ledgerpos.models import ArchiveRecord, Invoice, Product, SecurityEvent, TreasuryLog
from ledgerpos.services import return_service, sales_service, shift_service
from ledgerpos.services.commands import DiscountRequest, ReturnLineRequest, SaleLineRequest, SaleRequest
from ledgerpos.services.commands import SalesReturnRequest


def sale(*lines, discount=None, **kwargs):
    return SaleRequest(
        lines=[SaleLineRequest(product_id=pid, quantity=qty) for pid, qty in lines],
        discount=discount or DiscountRequest(),
        **kwargs,
    )


# =============================================================================
# HAPPY PATH
# =============================================================================


class TestProcessSale:

    def test_sale_decrements_stock_and_logs_cash(self, seed, product, cashier_shift, db_session):
        invoice = sales_service.process_sale(actor=seed.cashier, request=sale((product.id, 3)))

        assert db_session.get(Product, product.id).stock == 2
        assert invoice.gross_cents == 4500
        assert invoice.discount_cents == 0
        assert invoice.net_cents == 4500
        assert invoice.shift_id == cashier_shift.id
        assert invoice.branch_id == seed.main.id
        assert invoice.customer_name == "Cash customer"

        [line] = invoice.lines
        assert line.quantity == 3
        assert line.unit_price_cents == 1500
        assert line.cost_cents_at_sale == 1000
        assert line.subtotal_cents == 4500

        logs = db_session.query(TreasuryLog).all()
        assert len(logs) == 1
        assert logs[0].direction == "in"
        assert logs[0].source == "sale"
        assert logs[0].amount_cents == 4500
        assert logs[0].shift_id == cashier_shift.id
        assert logs[0].reference_id == invoice.id

    def test_offer_price_is_used_when_set(self, seed, product_factory, cashier_shift):
        promo = product_factory("Promo Cable", stock=3, retail=2000, offer=1200)
        invoice = sales_service.process_sale(actor=seed.cashier, request=sale((promo.id, 2)))
        assert invoice.lines[0].unit_price_cents == 1200
        assert invoice.net_cents == 2400

    def test_explicit_unit_price(self, seed, product, cashier_shift):
        request = SaleRequest(lines=[SaleLineRequest(product_id=product.id, quantity=1, unit_price_cents=999)])
        invoice = sales_service.process_sale(actor=seed.cashier, request=request)
        assert invoice.net_cents == 999

    def test_gross_is_sum_of_lines(self, seed, product, product_factory, cashier_shift):
        other = product_factory("Screen Guard", stock=10, retail=700)
        invoice = sales_service.process_sale(
            actor=seed.cashier, request=sale((product.id, 2), (other.id, 3))
        )
        assert invoice.gross_cents == sum(line.subtotal_cents for line in invoice.lines) == 5100
        assert [line.position for line in invoice.lines] == [1, 2]


# =============================================================================
# STOCK FAILURES
# =============================================================================


class TestInsufficientStock:

    def test_oversell_applies_nothing(self, seed, product, cashier_shift, db_session):
        with pytest.raises(InsufficientStock) as exc_info:
            sales_service.process_sale(actor=seed.cashier, request=sale((product.id, 6)))

        assert exc_info.value.product_id == product.id
        assert exc_info.value.details["available"] == 5
        assert db_session.get(Product, product.id).stock == 5
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(TreasuryLog).count() == 0

    def test_one_bad_line_rolls_back_every_line(self, seed, product, product_factory, cashier_shift, db_session):
        scarce = product_factory("Scarce Item", stock=1)
        with pytest.raises(InsufficientStock):
            sales_service.process_sale(actor=seed.cashier, request=sale((product.id, 2), (scarce.id, 2)))

        assert db_session.get(Product, product.id).stock == 5
        assert db_session.get(Product, scarce.id).stock == 1

    def test_repeated_product_lines_are_summed(self, seed, product, cashier_shift, db_session):
        with pytest.raises(InsufficientStock):
            sales_service.process_sale(actor=seed.cashier, request=sale((product.id, 3), (product.id, 3)))
        assert db_session.get(Product, product.id).stock == 5

    def test_sell_entire_stock(self, seed, product, cashier_shift, db_session):
        sales_service.process_sale(actor=seed.cashier, request=sale((product.id, 5)))
        assert db_session.get(Product, product.id).stock == 0


# =============================================================================
# DISCOUNTS
# =============================================================================


class TestDiscounts:

    def test_fixed_discount(self, seed, product, cashier_shift):
        invoice = sales_service.process_sale(
            actor=seed.cashier,
            request=sale((product.id, 3), discount=DiscountRequest(type="fixed", value=Decimal("500"))),
        )
        assert invoice.discount_cents == 500
        assert invoice.net_cents == 4000

    def test_percentage_discount_rounds_half_up(self):
        assert DiscountRequest(type="percentage", value=Decimal("12.5")).amount_cents(1500) == 188
        assert DiscountRequest(type="percentage", value=Decimal("10")).amount_cents(4500) == 450
        assert DiscountRequest(type="percentage", value=Decimal("100")).amount_cents(4500) == 4500

    def test_discount_above_gross_rejected(self, seed, product, cashier_shift, db_session):
        with pytest.raises(ValidationFailed):
            sales_service.process_sale(
                actor=seed.cashier,
                request=sale((product.id, 1), discount=DiscountRequest(type="fixed", value=Decimal("1501"))),
            )
        assert db_session.get(Product, product.id).stock == 5

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "fixed", "value": -1},
            {"type": "percentage", "value": 101},
        ],
    )
    def test_invalid_discount_values(self, payload):
        with pytest.raises(ValidationFailed):
            DiscountRequest.from_dict(payload).amount_cents(1000)

    def test_unknown_discount_type(self):
        with pytest.raises(ValidationFailed):
            DiscountRequest.from_dict({"type": "bogo", "value": 1})


# =============================================================================
# SHIFT AND BRANCH RULES
# =============================================================================


class TestSaleRules:

    def test_requires_open_shift(self, seed, product, db_session):
        with pytest.raises(NoOpenShift):
            sales_service.process_sale(actor=seed.manager, request=sale((product.id, 1)))
        assert db_session.get(Product, product.id).stock == 5

    def test_cannot_sell_other_branch_product(self, seed, north_product, cashier_shift, db_session):
        with pytest.raises(AuthorizationDenied):
            sales_service.process_sale(actor=seed.cashier, request=sale((north_product.id, 1)))

        assert db_session.get(Product, north_product.id).stock == 4
        event = db_session.query(SecurityEvent).one()
        assert event.action == "sell"
        assert event.resource == f"product:{north_product.id}"

    def test_head_office_actor_sells_anywhere(self, seed, north_product, db_session):
        shift_service.open_shift(actor=seed.admin, opening_cents=0)
        invoice = sales_service.process_sale(actor=seed.admin, request=sale((north_product.id, 1)))
        assert invoice.net_cents == 3000
        assert db_session.get(Product, north_product.id).stock == 3

    def test_hidden_sell_action(self, seed, product):
        shift_service.open_shift(actor=seed.accountant, opening_cents=0)
        with pytest.raises(AuthorizationDenied):
            sales_service.process_sale(actor=seed.accountant, request=sale((product.id, 1)))


# =============================================================================
# REQUEST PARSING
# =============================================================================


class TestSaleRequestParsing:

    def test_from_dict(self):
        request = SaleRequest.from_dict({
            "lines": [{"product_id": 4, "quantity": "2"}],
            "discount": {"type": "percentage", "value": "7.5"},
            "customer_name": "Walk-in",
        })
        assert request.lines == [SaleLineRequest(product_id=4, quantity=2)]
        assert request.discount == DiscountRequest(type="percentage", value=Decimal("7.5"))

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"lines": []},
            {"lines": [{"quantity": 1}]},
            {"lines": [{"product_id": 1, "quantity": "x"}]},
        ],
    )
    def test_malformed_requests(self, payload):
        with pytest.raises(ValidationFailed):
            SaleRequest.from_dict(payload)


# =============================================================================
# INVOICE DELETION
# =============================================================================


class TestDeleteInvoice:

    def test_delete_restores_outstanding_stock_and_cash(self, seed, product, cashier_shift, db_session):
        invoice = sales_service.process_sale(actor=seed.cashier, request=sale((product.id, 3)))
        line_id = invoice.lines[0].id
        return_service.process_sales_return(
            actor=seed.cashier,
            request=SalesReturnRequest(invoice_id=invoice.id, lines=[ReturnLineRequest(line_id=line_id, quantity=1)]),
        )
        assert db_session.get(Product, product.id).stock == 3

        sales_service.delete_invoice(actor=seed.manager, invoice_id=invoice.id, reason="Entered twice")

        assert db_session.get(Product, product.id).stock == 5
        void = db_session.query(TreasuryLog).filter_by(source="invoice_void").one()
        assert void.direction == "out"
        assert void.amount_cents == 3000
        assert void.shift_id == cashier_shift.id

        archived = db_session.query(ArchiveRecord).filter_by(item_type="invoice").one()
        assert archived.item_id == invoice.id
        assert archived.reason == "Entered twice"
        assert archived.original_data["net_cents"] == 4500

        with pytest.raises(NotFound):
            sales_service.get_invoice(invoice.id)
        assert sales_service.get_invoice(invoice.id, include_deleted=True).is_deleted is True

    def test_shift_balance_nets_to_opening_after_void(self, seed, product, cashier_shift):
        invoice = sales_service.process_sale(actor=seed.cashier, request=sale((product.id, 2)))
        sales_service.delete_invoice(actor=seed.manager, invoice_id=invoice.id, reason="Customer left")
        shift = shift_service.get_shift(cashier_shift.id)
        assert shift_service.expected_balance_cents(shift) == 50000

    def test_cashier_cannot_delete(self, seed, product, cashier_shift, db_session):
        invoice = sales_service.process_sale(actor=seed.cashier, request=sale((product.id, 1)))
        with pytest.raises(AuthorizationDenied):
            sales_service.delete_invoice(actor=seed.cashier, invoice_id=invoice.id, reason="oops")
        assert db_session.get(Invoice, invoice.id).is_deleted is False

    def test_reason_required(self, seed, product, cashier_shift, db_session):
        invoice = sales_service.process_sale(actor=seed.cashier, request=sale((product.id, 1)))
        with pytest.raises(ValidationFailed):
            sales_service.delete_invoice(actor=seed.manager, invoice_id=invoice.id, reason="  ")

        assert db_session.get(Invoice, invoice.id).is_deleted is False
        assert db_session.get(Product, product.id).stock == 4
        assert db_session.query(TreasuryLog).filter_by(source="invoice_void").count() == 0

    def test_cannot_delete_twice(self, seed, product, cashier_shift):
        invoice = sales_service.process_sale(actor=seed.cashier, request=sale((product.id, 1)))
        sales_service.delete_invoice(actor=seed.manager, invoice_id=invoice.id, reason="void")
        with pytest.raises(NotFound):
            sales_service.delete_invoice(actor=seed.manager, invoice_id=invoice.id, reason="void")
