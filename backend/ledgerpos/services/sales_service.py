# Overview: Sale transaction processor and invoice deletion.

"""
Sale Transaction Processor

process_sale() runs as one atomic unit:
(a) decrement stock for every line (products locked in id order)
(b) persist the Invoice and its lines
(c) append a TreasuryLog 'in' for the net total, tagged with the shift

Any line exceeding live stock raises InsufficientStock for that product
and nothing is applied.

INVARIANTS:
- gross_cents = sum(line.subtotal_cents)
- net_cents = gross_cents - discount_cents, 0 <= discount_cents <= gross_cents
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import AuthorizationDenied, NotFound, ValidationFailed
from ..extensions import db
from ..identity import Actor
from ..models import Invoice, InvoiceLine, Product, ReturnLine, ReturnRecord
from ..time_utils import utcnow
from .archive_service import soft_delete
from .authorization_service import AuthorizationConfig, is_super_admin, log_security_event, require_allowed
from .commands import SaleRequest
from .concurrency import lock_for_update, run_atomic
from .shift_service import require_open_shift
from .stock_service import decrement_stock, get_product_for_update, increment_stock
from .treasury_service import append_treasury_log


logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Cash customer"


def can_sell_from(actor: Actor, product: Product, config: AuthorizationConfig) -> bool:
    """
    Branch rule for selling a product.

    Shared products (no branch), head-office actors (no branch) and the
    super-admin may sell anywhere; everyone else only within their branch.
    """
    if product.branch_id is None or actor.branch_id is None:
        return True
    if product.branch_id == actor.branch_id:
        return True
    return is_super_admin(actor, config)


def _check_branches(actor: Actor, product_ids: list[int], config: AuthorizationConfig) -> None:
    products = db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    for product in products:
        if not can_sell_from(actor, product, config):
            logger.warning(
                "Sale denied: user=%s branch=%s product=%s branch=%s",
                actor.username, actor.branch_id, product.id, product.branch_id,
            )
            log_security_event(
                user_id=actor.id,
                username=actor.username,
                event_type="AUTHORIZATION_DENIED",
                success=False,
                action="sell",
                resource=f"product:{product.id}",
                reason="Product belongs to another branch",
            )
            raise AuthorizationDenied(
                "sell",
                username=actor.username,
                message=f"Product '{product.name}' belongs to another branch",
            )


def process_sale(*, actor: Actor, request: SaleRequest) -> Invoice:
    """
    Sell the requested lines within the actor's open shift.

    Raises:
        AuthorizationDenied: 'sell' denied, or a product from another branch
        NoOpenShift: the actor has no open shift
        InsufficientStock: a line exceeds live stock
        ValidationFailed: empty lines or an invalid discount
    """
    config = require_allowed(actor, "sell")
    if not request.lines:
        raise ValidationFailed("At least one line is required")

    product_ids = sorted({line.product_id for line in request.lines})
    _check_branches(actor, product_ids, config)

    def _op():
        shift = require_open_shift(actor)

        # Locked in product id order
        products = {pid: get_product_for_update(pid) for pid in product_ids}

        lines = []
        gross = 0
        for position, item in enumerate(request.lines, start=1):
            product = products[item.product_id]
            unit_price = item.unit_price_cents
            if unit_price is None:
                unit_price = product.effective_price_cents
            subtotal = unit_price * item.quantity
            gross += subtotal
            lines.append(
                InvoiceLine(
                    position=position,
                    product_id=product.id,
                    product_name=product.name,
                    quantity=item.quantity,
                    unit_price_cents=unit_price,
                    cost_cents_at_sale=product.wholesale_cost_cents,
                    subtotal_cents=subtotal,
                )
            )

        discount = request.discount.amount_cents(gross)

        requested: dict[int, int] = {}
        for item in request.lines:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        for product_id, quantity in requested.items():
            decrement_stock(products[product_id], quantity)

        invoice = Invoice(
            branch_id=shift.branch_id if shift.branch_id is not None else actor.branch_id,
            shift_id=shift.id,
            created_by_user_id=actor.id,
            creator_username=actor.username,
            customer_name=(request.customer_name or "").strip() or DEFAULT_CUSTOMER_NAME,
            customer_phone=request.customer_phone,
            notes=request.notes,
            discount_type=request.discount.type,
            discount_input=request.discount.value,
            gross_cents=gross,
            discount_cents=discount,
            net_cents=gross - discount,
            status="completed",
            created_at=utcnow(),
            lines=lines,
        )
        db.session.add(invoice)
        db.session.flush()

        append_treasury_log(
            direction="in",
            source="sale",
            amount_cents=invoice.net_cents,
            actor=actor,
            branch_id=invoice.branch_id,
            shift_id=shift.id,
            reference_id=invoice.id,
        )
        return invoice

    invoice = run_atomic(_op, operation="process_sale")
    logger.info(
        "Sale committed: invoice=%s shift=%s net=%s lines=%d by=%s",
        invoice.id, invoice.shift_id, invoice.net_cents, len(invoice.lines), actor.username,
    )
    return invoice


def get_invoice(invoice_id: int, *, include_deleted: bool = False) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None or (invoice.is_deleted and not include_deleted):
        raise NotFound(f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id})
    return invoice


def list_invoices(
    *,
    branch_id: int | None = None,
    shift_id: int | None = None,
    include_deleted: bool = False,
    limit: int = 100,
) -> list[Invoice]:
    query = db.session.query(Invoice)
    if not include_deleted:
        query = query.filter(Invoice.is_deleted.is_(False))
    if branch_id is not None:
        query = query.filter(Invoice.branch_id == branch_id)
    if shift_id is not None:
        query = query.filter(Invoice.shift_id == shift_id)
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(limit).all()


def returned_quantities(invoice_id: int) -> dict[int, int]:
    """Quantity already returned per invoice line (non-deleted returns)."""
    rows = (
        db.session.query(ReturnLine.invoice_line_id, func.sum(ReturnLine.quantity))
        .join(ReturnRecord, ReturnRecord.id == ReturnLine.return_id)
        .filter(ReturnRecord.invoice_id == invoice_id, ReturnRecord.is_deleted.is_(False))
        .group_by(ReturnLine.invoice_line_id)
        .all()
    )
    return {line_id: int(qty) for line_id, qty in rows}


def refunded_total_cents(invoice_id: int) -> int:
    total = db.session.query(func.coalesce(func.sum(ReturnRecord.total_refund_cents), 0)).filter(
        ReturnRecord.invoice_id == invoice_id,
        ReturnRecord.is_deleted.is_(False),
    ).scalar()
    return int(total or 0)


def delete_invoice(*, actor: Actor, invoice_id: int, reason: str) -> Invoice:
    """
    Void an invoice: soft-delete, archive, and compensate.

    Compensation in the same unit:
    - stock restored for every quantity not already returned
    - TreasuryLog 'out' (invoice_void) for net minus refunds already paid,
      tagged with the invoice's shift only while that shift is still open
    """
    require_allowed(actor, "delete_invoice")

    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter(Invoice.id == invoice_id)).first()
        if invoice is None or invoice.is_deleted:
            raise NotFound(f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id})

        snapshot = invoice.to_dict()
        returned = returned_quantities(invoice.id)

        restore: dict[int, int] = {}
        for line in invoice.lines:
            outstanding = line.quantity - returned.get(line.id, 0)
            if outstanding > 0:
                restore[line.product_id] = restore.get(line.product_id, 0) + outstanding
        for product_id in sorted(restore):
            product = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).one()
            increment_stock(product, restore[product_id])

        void_amount = invoice.net_cents - refunded_total_cents(invoice.id)
        shift = invoice.shift
        append_treasury_log(
            direction="out",
            source="invoice_void",
            amount_cents=max(void_amount, 0),
            actor=actor,
            branch_id=invoice.branch_id,
            shift_id=shift.id if shift is not None and shift.status == "open" else None,
            reference_id=invoice.id,
            notes=reason,
        )

        soft_delete(invoice, item_type="invoice", actor=actor, reason=reason, snapshot=snapshot)
        return invoice

    invoice = run_atomic(_op, operation="delete_invoice")
    logger.info("Invoice deleted: id=%s by=%s reason=%s", invoice.id, actor.username, reason)
    return invoice
