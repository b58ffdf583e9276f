# Overview: Sales return and purchase return processors.

"""
Return Processors

Sales return (customer brings goods back against one invoice):
- per line, quantity <= sold - already returned
- stock incremented, ReturnRecord persisted, TreasuryLog 'out' for the refund

Purchase return (goods sent back to the supplier from one purchase):
- per line, quantity <= purchased - already returned
- stock decremented, PurchaseReturnRecord persisted
- refund_method 'cash': TreasuryLog 'in' once the money is received
- refund_method 'debt_deduction': the purchase's remaining amount drops

Zero total quantity is rejected with InvalidQuantity. Both processors
touch the parent's last_return_at so concurrent returns against the same
invoice or purchase conflict on its version_id instead of both passing
the returnable-quantity check.
"""

from __future__ import annotations

import logging

from ..errors import InvalidQuantity, NotFound, OverpaymentRejected, ValidationFailed
from ..extensions import db
from ..identity import Actor
from ..models import Invoice, Product, PurchaseRecord, PurchaseReturnLine, PurchaseReturnRecord
from ..models import ReturnLine, ReturnRecord
from ..time_utils import utcnow
from .authorization_service import require_allowed
from .commands import REFUND_METHODS, PurchaseReturnRequest, ReturnLineRequest, SalesReturnRequest
from .concurrency import lock_for_update, run_atomic
from .purchase_service import returned_purchase_quantities
from .sales_service import returned_quantities
from .shift_service import get_open_shift
from .stock_service import decrement_stock, increment_stock
from .treasury_service import append_treasury_log


logger = logging.getLogger(__name__)


def _requested_quantities(lines: list[ReturnLineRequest]) -> dict[int, int]:
    requested: dict[int, int] = {}
    for line in lines:
        if line.quantity < 0:
            raise InvalidQuantity("Return quantity cannot be negative", details={"line_id": line.line_id})
        if line.quantity > 0:
            requested[line.line_id] = requested.get(line.line_id, 0) + line.quantity
    if not requested:
        raise InvalidQuantity("Total return quantity must be greater than zero")
    return requested


def _check_returnable(line, requested: int, already: int) -> None:
    returnable = line.quantity - already
    if requested > returnable:
        raise InvalidQuantity(
            f"Return quantity for '{line.product_name}' exceeds returnable quantity",
            details={
                "line_id": line.id,
                "product_id": line.product_id,
                "requested": requested,
                "returnable": returnable,
            },
        )


def _lock_products(product_ids) -> dict[int, Product]:
    return {
        pid: lock_for_update(db.session.query(Product).filter(Product.id == pid)).one()
        for pid in sorted(set(product_ids))
    }


# =============================================================================
# SALES RETURNS
# =============================================================================

def process_sales_return(*, actor: Actor, request: SalesReturnRequest) -> ReturnRecord:
    """
    Accept a customer return against one invoice.

    Each line refunds its quantity at the invoiced unit price and the
    record total is the sum of its lines.

    Raises:
        InvalidQuantity: zero total, or a line above its returnable quantity
        NotFound: unknown or deleted invoice
        ValidationFailed: a line that does not belong to the invoice
    """
    require_allowed(actor, "process_return")
    requested = _requested_quantities(request.lines)

    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter(Invoice.id == request.invoice_id)).first()
        if invoice is None or invoice.is_deleted:
            raise NotFound(f"Invoice {request.invoice_id} not found", details={"invoice_id": request.invoice_id})

        invoice_lines = {line.id: line for line in invoice.lines}
        already = returned_quantities(invoice.id)

        for line_id, quantity in requested.items():
            line = invoice_lines.get(line_id)
            if line is None:
                raise ValidationFailed(
                    f"Line {line_id} does not belong to invoice {invoice.id}",
                    details={"line_id": line_id, "invoice_id": invoice.id},
                )
            _check_returnable(line, quantity, already.get(line_id, 0))

        products = _lock_products(invoice_lines[line_id].product_id for line_id in requested)

        return_lines = []
        refund_sum = 0
        for line_id in sorted(requested):
            line = invoice_lines[line_id]
            quantity = requested[line_id]
            increment_stock(products[line.product_id], quantity)
            refund = quantity * line.unit_price_cents
            refund_sum += refund
            return_lines.append(
                ReturnLine(
                    invoice_line_id=line.id,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=quantity,
                    unit_price_cents=line.unit_price_cents,
                    cost_cents_at_sale=line.cost_cents_at_sale,
                    refund_cents=refund,
                )
            )

        shift = get_open_shift(actor.id)
        record = ReturnRecord(
            invoice_id=invoice.id,
            branch_id=invoice.branch_id,
            shift_id=shift.id if shift is not None else None,
            created_by_user_id=actor.id,
            total_refund_cents=refund_sum,
            notes=request.notes,
            created_at=utcnow(),
            lines=return_lines,
        )
        db.session.add(record)
        invoice.last_return_at = utcnow()
        db.session.flush()

        append_treasury_log(
            direction="out",
            source="sales_return",
            amount_cents=refund_sum,
            actor=actor,
            branch_id=shift.branch_id if shift is not None and shift.branch_id is not None else invoice.branch_id,
            shift_id=record.shift_id,
            reference_id=record.id,
        )
        return record

    record = run_atomic(_op, operation="process_sales_return")
    logger.info(
        "Sales return committed: id=%s invoice=%s refund=%s by=%s",
        record.id, record.invoice_id, record.total_refund_cents, actor.username,
    )
    return record


# =============================================================================
# PURCHASE RETURNS
# =============================================================================

def process_purchase_return(*, actor: Actor, request: PurchaseReturnRequest) -> PurchaseReturnRecord:
    """
    Send goods back to the supplier from one purchase.

    Raises:
        InvalidQuantity: zero total, or a line above its returnable quantity
        InsufficientStock: the goods are no longer in stock
        OverpaymentRejected: debt_deduction refund above the purchase's remaining amount
        NotFound: unknown or deleted purchase
    """
    require_allowed(actor, "process_purchase_return")
    if request.refund_method not in REFUND_METHODS:
        raise ValidationFailed(
            f"Unknown refund method '{request.refund_method}'",
            details={"refund_method": request.refund_method},
        )
    requested = _requested_quantities(request.lines)

    def _op():
        purchase = lock_for_update(
            db.session.query(PurchaseRecord).filter(PurchaseRecord.id == request.purchase_id)
        ).first()
        if purchase is None or purchase.is_deleted:
            raise NotFound(f"Purchase {request.purchase_id} not found", details={"purchase_id": request.purchase_id})

        purchase_lines = {line.id: line for line in purchase.lines}
        already = returned_purchase_quantities(purchase.id)

        for line_id, quantity in requested.items():
            line = purchase_lines.get(line_id)
            if line is None:
                raise ValidationFailed(
                    f"Line {line_id} does not belong to purchase {purchase.id}",
                    details={"line_id": line_id, "purchase_id": purchase.id},
                )
            _check_returnable(line, quantity, already.get(line_id, 0))

        products = _lock_products(purchase_lines[line_id].product_id for line_id in requested)

        return_lines = []
        total_refund = 0
        for line_id in sorted(requested):
            line = purchase_lines[line_id]
            quantity = requested[line_id]
            decrement_stock(products[line.product_id], quantity)
            refund = quantity * line.cost_cents
            total_refund += refund
            return_lines.append(
                PurchaseReturnLine(
                    purchase_line_id=line.id,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=quantity,
                    cost_cents=line.cost_cents,
                    refund_cents=refund,
                )
            )

        if request.refund_method == "debt_deduction":
            if total_refund > purchase.remaining_cents:
                raise OverpaymentRejected(
                    "Refund exceeds the purchase's remaining amount",
                    details={
                        "purchase_id": purchase.id,
                        "refund_cents": total_refund,
                        "remaining_cents": purchase.remaining_cents,
                    },
                )
            purchase.remaining_cents = purchase.remaining_cents - total_refund
            purchase.refresh_settlement_status()

        is_received = request.refund_method == "cash" and request.is_money_received
        record = PurchaseReturnRecord(
            purchase_id=purchase.id,
            supplier_id=purchase.supplier_id,
            branch_id=actor.branch_id,
            created_by_user_id=actor.id,
            total_refund_cents=total_refund,
            refund_method=request.refund_method,
            is_money_received=is_received,
            notes=request.notes,
            created_at=utcnow(),
            lines=return_lines,
        )
        db.session.add(record)
        purchase.last_return_at = utcnow()
        db.session.flush()

        if is_received:
            append_treasury_log(
                direction="in",
                source="purchase_return",
                amount_cents=total_refund,
                actor=actor,
                branch_id=actor.branch_id,
                reference_id=record.id,
            )
        return record

    record = run_atomic(_op, operation="process_purchase_return")
    logger.info(
        "Purchase return committed: id=%s purchase=%s refund=%s method=%s by=%s",
        record.id, record.purchase_id, record.total_refund_cents, record.refund_method, actor.username,
    )
    return record


def mark_refund_received(*, actor: Actor, return_id: int) -> PurchaseReturnRecord:
    """
    Record that the supplier paid back a cash purchase return.

    Appends the TreasuryLog 'in' that was deferred at return time.
    """
    require_allowed(actor, "process_purchase_return")

    def _op():
        record = lock_for_update(
            db.session.query(PurchaseReturnRecord).filter(PurchaseReturnRecord.id == return_id)
        ).first()
        if record is None or record.is_deleted:
            raise NotFound(f"Purchase return {return_id} not found", details={"return_id": return_id})
        if record.refund_method != "cash":
            raise ValidationFailed("Only cash refunds can be marked as received", details={"return_id": record.id})
        if record.is_money_received:
            raise ValidationFailed("Refund already received", details={"return_id": record.id})

        record.is_money_received = True
        append_treasury_log(
            direction="in",
            source="purchase_return",
            amount_cents=record.total_refund_cents,
            actor=actor,
            branch_id=record.branch_id,
            reference_id=record.id,
        )
        return record

    record = run_atomic(_op, operation="mark_refund_received")
    logger.info("Purchase return refund received: id=%s by=%s", record.id, actor.username)
    return record
