# Overview: Supplier master data, debt projections and supplier payments.

"""
Supplier Ledger

Supplier totals are never stored. supplier_statement() recomputes them
from non-deleted purchases, payment allocations and purchase returns:

    total_supplied = sum(purchase.total) - sum(purchase returns)
    current_debt   = sum(purchase.remaining)
    total_paid     = sum(purchase.paid) + sum(allocations) - sum(cash refunds)
    drift          = total_paid - (total_supplied - current_debt)    (always 0)

Payments update PurchaseRecord.remaining_cents under a row lock. Untied
payments are allocated oldest purchase first (created_at, then id), and
the allocation rows are stored with the payment.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import NotFound, OverpaymentRejected, SupplierHasDebt, ValidationFailed
from ..extensions import db
from ..identity import Actor
from ..models import PaymentAllocation, PurchaseRecord, PurchaseReturnRecord, Supplier, SupplierPayment
from ..time_utils import utcnow
from .archive_service import soft_delete
from .authorization_service import require_allowed
from .commands import SupplierPaymentRequest
from .concurrency import lock_for_update, run_atomic
from .treasury_service import append_treasury_log


logger = logging.getLogger(__name__)


# =============================================================================
# SUPPLIER MANAGEMENT
# =============================================================================

def create_supplier(
    *,
    actor: Actor,
    name: str,
    phone: str | None = None,
    tax_number: str | None = None,
    commercial_register: str | None = None,
) -> Supplier:
    require_allowed(actor, "manage_suppliers")
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Supplier name is required")

    def _op():
        supplier = Supplier(
            name=name,
            phone=phone,
            tax_number=tax_number,
            commercial_register=commercial_register,
            created_at=utcnow(),
        )
        db.session.add(supplier)
        db.session.flush()
        return supplier

    supplier = run_atomic(_op, operation="create_supplier")
    logger.info("Supplier created: id=%s name=%s by=%s", supplier.id, supplier.name, actor.username)
    return supplier


def get_supplier(supplier_id: int, *, include_deleted: bool = False) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None or (supplier.is_deleted and not include_deleted):
        raise NotFound(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


def list_suppliers() -> list[Supplier]:
    return db.session.query(Supplier).filter(Supplier.is_deleted.is_(False)).order_by(Supplier.name.asc()).all()


def delete_supplier(*, actor: Actor, supplier_id: int, reason: str) -> Supplier:
    """
    Soft-delete a supplier.

    Raises:
        SupplierHasDebt: the derived current debt is not zero
    """
    require_allowed(actor, "manage_suppliers")

    def _op():
        supplier = get_supplier(supplier_id)
        debt = current_debt_cents(supplier.id)
        if debt > 0:
            raise SupplierHasDebt(
                f"Supplier '{supplier.name}' still has outstanding debt",
                details={"supplier_id": supplier.id, "current_debt_cents": debt},
            )
        return soft_delete(supplier, item_type="supplier", actor=actor, reason=reason)

    supplier = run_atomic(_op, operation="delete_supplier")
    logger.info("Supplier deleted: id=%s by=%s", supplier.id, actor.username)
    return supplier


# =============================================================================
# PROJECTIONS
# =============================================================================

def _live_purchases(supplier_id: int):
    return db.session.query(PurchaseRecord).filter(
        PurchaseRecord.supplier_id == supplier_id,
        PurchaseRecord.is_deleted.is_(False),
    )


def current_debt_cents(supplier_id: int) -> int:
    total = db.session.query(func.coalesce(func.sum(PurchaseRecord.remaining_cents), 0)).filter(
        PurchaseRecord.supplier_id == supplier_id,
        PurchaseRecord.is_deleted.is_(False),
    ).scalar()
    return int(total or 0)


def supplier_statement(supplier_id: int) -> dict:
    """Recompute a supplier's totals from ledger rows (amounts in cents)."""
    supplier = get_supplier(supplier_id, include_deleted=True)

    purchased, initial_paid, debt, purchase_count = db.session.query(
        func.coalesce(func.sum(PurchaseRecord.total_cents), 0),
        func.coalesce(func.sum(PurchaseRecord.paid_cents), 0),
        func.coalesce(func.sum(PurchaseRecord.remaining_cents), 0),
        func.count(PurchaseRecord.id),
    ).filter(
        PurchaseRecord.supplier_id == supplier.id,
        PurchaseRecord.is_deleted.is_(False),
    ).one()

    allocated = db.session.query(func.coalesce(func.sum(PaymentAllocation.amount_cents), 0)).join(
        PurchaseRecord, PurchaseRecord.id == PaymentAllocation.purchase_id
    ).filter(
        PurchaseRecord.supplier_id == supplier.id,
        PurchaseRecord.is_deleted.is_(False),
    ).scalar()

    returns_rows = db.session.query(
        PurchaseReturnRecord.refund_method,
        func.coalesce(func.sum(PurchaseReturnRecord.total_refund_cents), 0),
    ).join(
        PurchaseRecord, PurchaseRecord.id == PurchaseReturnRecord.purchase_id
    ).filter(
        PurchaseRecord.supplier_id == supplier.id,
        PurchaseRecord.is_deleted.is_(False),
        PurchaseReturnRecord.is_deleted.is_(False),
    ).group_by(PurchaseReturnRecord.refund_method).all()
    returns_by_method = {method: int(total) for method, total in returns_rows}
    returns_total = sum(returns_by_method.values())
    cash_refunds = returns_by_method.get("cash", 0)

    payments_total = db.session.query(func.coalesce(func.sum(SupplierPayment.amount_cents), 0)).filter(
        SupplierPayment.supplier_id == supplier.id
    ).scalar()

    total_supplied = int(purchased) - returns_total
    current_debt = int(debt)
    total_paid = int(initial_paid) + int(allocated or 0) - cash_refunds

    return {
        "supplier": supplier.to_dict(),
        "purchase_count": int(purchase_count),
        "total_purchased_cents": int(purchased),
        "returns_total_cents": returns_total,
        "cash_refunds_cents": cash_refunds,
        "total_supplied_cents": total_supplied,
        "total_paid_cents": total_paid,
        "current_debt_cents": current_debt,
        "payments_total_cents": int(payments_total or 0),
        "drift_cents": total_paid - (total_supplied - current_debt),
    }


def list_payments(supplier_id: int) -> list[SupplierPayment]:
    return db.session.query(SupplierPayment).filter_by(supplier_id=supplier_id).order_by(
        SupplierPayment.created_at.asc(), SupplierPayment.id.asc()
    ).all()


# =============================================================================
# PAYMENTS
# =============================================================================

def _allocate(purchase: PurchaseRecord, amount_cents: int) -> PaymentAllocation:
    purchase.remaining_cents = purchase.remaining_cents - amount_cents
    purchase.refresh_settlement_status()
    return PaymentAllocation(purchase_id=purchase.id, amount_cents=amount_cents)


def record_supplier_payment(*, actor: Actor, request: SupplierPaymentRequest) -> SupplierPayment:
    """
    Pay a supplier, tied to one purchase or against the general balance.

    Raises:
        OverpaymentRejected: tied amount above the purchase's remaining
            amount, or untied amount above the supplier's total debt
        NotFound: unknown supplier or purchase
    """
    require_allowed(actor, "pay_supplier")
    if request.amount_cents <= 0:
        raise ValidationFailed("Payment amount must be positive", details={"amount_cents": request.amount_cents})

    def _op():
        supplier = get_supplier(request.supplier_id)
        allocations: list[PaymentAllocation] = []

        if request.purchase_id is not None:
            purchase = lock_for_update(
                _live_purchases(supplier.id).filter(PurchaseRecord.id == request.purchase_id)
            ).first()
            if purchase is None:
                raise NotFound(
                    f"Purchase {request.purchase_id} not found for supplier {supplier.id}",
                    details={"purchase_id": request.purchase_id, "supplier_id": supplier.id},
                )
            if request.amount_cents > purchase.remaining_cents:
                raise OverpaymentRejected(
                    "Payment exceeds the purchase's remaining amount",
                    details={
                        "purchase_id": purchase.id,
                        "amount_cents": request.amount_cents,
                        "remaining_cents": purchase.remaining_cents,
                    },
                )
            allocations.append(_allocate(purchase, request.amount_cents))
        else:
            open_purchases = lock_for_update(
                _live_purchases(supplier.id)
                .filter(PurchaseRecord.remaining_cents > 0)
                .order_by(PurchaseRecord.created_at.asc(), PurchaseRecord.id.asc())
            ).all()
            debt = sum(p.remaining_cents for p in open_purchases)
            if request.amount_cents > debt:
                raise OverpaymentRejected(
                    "Payment exceeds the supplier's outstanding debt",
                    details={
                        "supplier_id": supplier.id,
                        "amount_cents": request.amount_cents,
                        "current_debt_cents": debt,
                    },
                )
            left = request.amount_cents
            for purchase in open_purchases:
                if left == 0:
                    break
                portion = min(left, purchase.remaining_cents)
                allocations.append(_allocate(purchase, portion))
                left -= portion

        payment = SupplierPayment(
            supplier_id=supplier.id,
            purchase_id=request.purchase_id,
            amount_cents=request.amount_cents,
            notes=request.notes,
            branch_id=actor.branch_id,
            created_by_user_id=actor.id,
            created_at=utcnow(),
            allocations=allocations,
        )
        db.session.add(payment)
        db.session.flush()

        append_treasury_log(
            direction="out",
            source="supplier_payment",
            amount_cents=payment.amount_cents,
            actor=actor,
            branch_id=actor.branch_id,
            reference_id=payment.id,
            notes=f"supplier:{supplier.id}",
        )
        return payment

    payment = run_atomic(_op, operation="record_supplier_payment")
    logger.info(
        "Supplier payment committed: id=%s supplier=%s amount=%s allocations=%d by=%s",
        payment.id, payment.supplier_id, payment.amount_cents, len(payment.allocations), actor.username,
    )
    return payment
