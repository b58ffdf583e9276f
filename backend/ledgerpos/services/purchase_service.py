# Overview: Purchase transaction processor and purchase deletion.

"""
Purchase Transaction Processor

process_purchase() runs as one atomic unit:
(a) per line: create the product first when it is new, then increment stock
(b) persist the PurchaseRecord with remaining = total - paid
(c) paid > 0 is the purchase's own paid amount (no SupplierPayment row),
    mirrored by a branch-level TreasuryLog 'out'

payment_status is 'cash' when nothing is left owing, else 'credit'.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import NotFound, OverpaymentRejected, ValidationFailed
from ..extensions import db
from ..identity import Actor
from ..models import Product, PurchaseLine, PurchaseRecord, PurchaseReturnLine, PurchaseReturnRecord
from ..time_utils import utcnow
from .archive_service import soft_delete
from .authorization_service import require_allowed
from .commands import PurchaseRequest
from .concurrency import lock_for_update, run_atomic
from .stock_service import decrement_stock, get_product_for_update, increment_stock, new_product
from .supplier_service import get_supplier
from .treasury_service import append_treasury_log


logger = logging.getLogger(__name__)


def process_purchase(*, actor: Actor, request: PurchaseRequest) -> PurchaseRecord:
    """
    Receive goods from a supplier.

    Existing products take the line's cost as their new wholesale cost, and
    its retail price when one is given.

    Raises:
        OverpaymentRejected: paid amount above the purchase total
        ValidationFailed: empty lines, negative paid amount, duplicate new product name
    """
    require_allowed(actor, "process_purchase")
    if not request.lines:
        raise ValidationFailed("At least one line is required")
    if request.paid_cents < 0:
        raise ValidationFailed("Paid amount cannot be negative", details={"paid_cents": request.paid_cents})

    def _op():
        supplier = get_supplier(request.supplier_id)

        existing_ids = sorted({line.product_id for line in request.lines if line.product_id is not None})
        products = {pid: get_product_for_update(pid) for pid in existing_ids}

        lines = []
        total = 0
        for position, item in enumerate(request.lines, start=1):
            if item.product_id is not None:
                product = products[item.product_id]
                product.wholesale_cost_cents = item.cost_cents
                if item.retail_price_cents is not None:
                    product.retail_price_cents = item.retail_price_cents
                if item.offer_price_cents is not None:
                    product.offer_price_cents = item.offer_price_cents
            else:
                product = new_product(
                    name=item.product_name,
                    wholesale_cost_cents=item.cost_cents,
                    retail_price_cents=item.retail_price_cents or 0,
                    offer_price_cents=item.offer_price_cents,
                    branch_id=actor.branch_id,
                )

            increment_stock(product, item.quantity)

            subtotal = item.cost_cents * item.quantity
            total += subtotal
            lines.append(
                PurchaseLine(
                    position=position,
                    product_id=product.id,
                    product_name=product.name,
                    quantity=item.quantity,
                    cost_cents=item.cost_cents,
                    retail_price_cents=item.retail_price_cents,
                    subtotal_cents=subtotal,
                )
            )

        if request.paid_cents > total:
            raise OverpaymentRejected(
                "Paid amount exceeds purchase total",
                details={"paid_cents": request.paid_cents, "total_cents": total},
            )

        remaining = total - request.paid_cents
        purchase = PurchaseRecord(
            supplier_id=supplier.id,
            supplier_invoice_no=request.supplier_invoice_no,
            branch_id=actor.branch_id,
            created_by_user_id=actor.id,
            total_cents=total,
            paid_cents=request.paid_cents,
            remaining_cents=remaining,
            payment_status="cash" if remaining == 0 else "credit",
            notes=request.notes,
            created_at=utcnow(),
            lines=lines,
        )
        purchase.refresh_settlement_status()
        db.session.add(purchase)
        db.session.flush()

        append_treasury_log(
            direction="out",
            source="purchase",
            amount_cents=purchase.paid_cents,
            actor=actor,
            branch_id=purchase.branch_id,
            reference_id=purchase.id,
        )
        return purchase

    purchase = run_atomic(_op, operation="process_purchase")
    logger.info(
        "Purchase committed: id=%s supplier=%s total=%s paid=%s status=%s by=%s",
        purchase.id, purchase.supplier_id, purchase.total_cents, purchase.paid_cents,
        purchase.payment_status, actor.username,
    )
    return purchase


def get_purchase(purchase_id: int, *, include_deleted: bool = False) -> PurchaseRecord:
    purchase = db.session.get(PurchaseRecord, purchase_id)
    if purchase is None or (purchase.is_deleted and not include_deleted):
        raise NotFound(f"Purchase {purchase_id} not found", details={"purchase_id": purchase_id})
    return purchase


def list_purchases(*, supplier_id: int | None = None, include_deleted: bool = False, limit: int = 100):
    query = db.session.query(PurchaseRecord)
    if not include_deleted:
        query = query.filter(PurchaseRecord.is_deleted.is_(False))
    if supplier_id is not None:
        query = query.filter(PurchaseRecord.supplier_id == supplier_id)
    return query.order_by(PurchaseRecord.created_at.desc(), PurchaseRecord.id.desc()).limit(limit).all()


def returned_purchase_quantities(purchase_id: int) -> dict[int, int]:
    """Quantity already sent back per purchase line (non-deleted returns)."""
    rows = (
        db.session.query(PurchaseReturnLine.purchase_line_id, func.sum(PurchaseReturnLine.quantity))
        .join(PurchaseReturnRecord, PurchaseReturnRecord.id == PurchaseReturnLine.return_id)
        .filter(PurchaseReturnRecord.purchase_id == purchase_id, PurchaseReturnRecord.is_deleted.is_(False))
        .group_by(PurchaseReturnLine.purchase_line_id)
        .all()
    )
    return {line_id: int(qty) for line_id, qty in rows}


def delete_purchase(*, actor: Actor, purchase_id: int, reason: str) -> PurchaseRecord:
    """
    Void a purchase: soft-delete, archive, and compensate.

    Compensation in the same unit:
    - stock removed for every quantity not already returned; InsufficientStock
      if those units have since been sold
    - TreasuryLog 'in' (purchase_void) for the purchase's own paid amount

    Allocations from later supplier payments stay recorded but stop
    counting toward the supplier's totals once the purchase is deleted.
    """
    require_allowed(actor, "delete_purchase")

    def _op():
        purchase = lock_for_update(
            db.session.query(PurchaseRecord).filter(PurchaseRecord.id == purchase_id)
        ).first()
        if purchase is None or purchase.is_deleted:
            raise NotFound(f"Purchase {purchase_id} not found", details={"purchase_id": purchase_id})

        snapshot = purchase.to_dict()
        returned = returned_purchase_quantities(purchase.id)

        remove: dict[int, int] = {}
        for line in purchase.lines:
            outstanding = line.quantity - returned.get(line.id, 0)
            if outstanding > 0:
                remove[line.product_id] = remove.get(line.product_id, 0) + outstanding
        for product_id in sorted(remove):
            product = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).one()
            decrement_stock(product, remove[product_id])

        append_treasury_log(
            direction="in",
            source="purchase_void",
            amount_cents=purchase.paid_cents,
            actor=actor,
            branch_id=purchase.branch_id,
            reference_id=purchase.id,
            notes=reason,
        )

        soft_delete(purchase, item_type="purchase", actor=actor, reason=reason, snapshot=snapshot)
        return purchase

    purchase = run_atomic(_op, operation="delete_purchase")
    logger.info("Purchase deleted: id=%s by=%s reason=%s", purchase.id, actor.username, reason)
    return purchase
