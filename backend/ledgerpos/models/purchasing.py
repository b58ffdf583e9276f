from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import SoftDeleteMixin


class Supplier(SoftDeleteMixin, db.Model):
    """
    Supplier master data.

    There are deliberately no total_debt / total_paid / total_supplied
    columns: those are projections computed by supplier_service from the
    purchase, payment and purchase-return rows every time they are read.
    """
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    tax_number = db.Column(db.String(64), nullable=True)
    commercial_register = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "tax_number": self.tax_number,
            "commercial_register": self.commercial_register,
            "created_at": to_utc_z(self.created_at),
            **self.soft_delete_dict(),
        }


class PurchaseRecord(SoftDeleteMixin, db.Model):
    """
    Goods received from a supplier.

    INVARIANTS:
    - remaining_cents >= 0
    - paid_cents <= total_cents (paid at creation; later payments are allocations)

    payment_status is fixed at creation (cash when nothing was left owing,
    credit otherwise). settlement_status tracks the live remaining balance:
    open, partial, settled.

    remaining_cents is shared mutable state: version_id makes two concurrent
    payments against the same purchase conflict instead of both succeeding.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.CheckConstraint("remaining_cents >= 0", name="ck_purchases_remaining_nonnegative"),
        db.CheckConstraint("paid_cents <= total_cents", name="ck_purchases_paid_le_total"),
        db.Index("ix_purchases_supplier_created", "supplier_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_invoice_no = db.Column(db.String(64), nullable=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    total_cents = db.Column(db.Integer, nullable=False)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    remaining_cents = db.Column(db.Integer, nullable=False)

    payment_status = db.Column(db.String(8), nullable=False)  # cash, credit
    settlement_status = db.Column(db.String(8), nullable=False)  # open, partial, settled

    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_return_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    lines = db.relationship(
        "PurchaseLine",
        backref="purchase",
        lazy=True,
        order_by="PurchaseLine.position",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def refresh_settlement_status(self) -> str:
        if self.remaining_cents <= 0:
            self.settlement_status = "settled"
        elif self.remaining_cents >= self.total_cents:
            self.settlement_status = "open"
        else:
            self.settlement_status = "partial"
        return self.settlement_status

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_invoice_no": self.supplier_invoice_no,
            "branch_id": self.branch_id,
            "created_by_user_id": self.created_by_user_id,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "remaining_cents": self.remaining_cents,
            "payment_status": self.payment_status,
            "settlement_status": self.settlement_status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
            **self.soft_delete_dict(),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class PurchaseLine(db.Model):
    __tablename__ = "purchase_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False)
    retail_price_cents = db.Column(db.Integer, nullable=True)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "position": self.position,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "cost_cents": self.cost_cents,
            "retail_price_cents": self.retail_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }


class SupplierPayment(db.Model):
    """
    Money paid to a supplier after the purchase was recorded.

    purchase_id is set for payments tied to one purchase, NULL for payments
    against the general balance. Either way the effect on purchases is
    recorded in PaymentAllocation rows.
    """
    __tablename__ = "supplier_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_supplier_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    allocations = db.relationship(
        "PaymentAllocation",
        backref="payment",
        lazy=True,
        order_by="PaymentAllocation.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "purchase_id": self.purchase_id,
            "amount_cents": self.amount_cents,
            "notes": self.notes,
            "branch_id": self.branch_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "allocations": [a.to_dict() for a in self.allocations],
        }


class PaymentAllocation(db.Model):
    """Portion of a supplier payment applied to one purchase."""
    __tablename__ = "payment_allocations"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payment_allocations_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("supplier_payments.id"), nullable=False, index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "purchase_id": self.purchase_id,
            "amount_cents": self.amount_cents,
        }


class PurchaseReturnRecord(SoftDeleteMixin, db.Model):
    """
    Goods sent back to a supplier from one original purchase.

    refund_method:
    - cash: supplier pays money back (is_money_received once collected)
    - debt_deduction: the original purchase's remaining amount is reduced
    """
    __tablename__ = "purchase_returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    total_refund_cents = db.Column(db.Integer, nullable=False)
    refund_method = db.Column(db.String(16), nullable=False)
    is_money_received = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    purchase = db.relationship("PurchaseRecord", backref=db.backref("returns", lazy=True))
    lines = db.relationship("PurchaseReturnLine", backref="purchase_return", lazy=True, cascade="all, delete-orphan")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "supplier_id": self.supplier_id,
            "branch_id": self.branch_id,
            "created_by_user_id": self.created_by_user_id,
            "total_refund_cents": self.total_refund_cents,
            "refund_method": self.refund_method,
            "is_money_received": self.is_money_received,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "lines": [line.to_dict() for line in self.lines],
            **self.soft_delete_dict(),
        }


class PurchaseReturnLine(db.Model):
    __tablename__ = "purchase_return_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_return_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("purchase_returns.id"), nullable=False, index=True)
    purchase_line_id = db.Column(db.Integer, db.ForeignKey("purchase_lines.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False)
    refund_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "purchase_line_id": self.purchase_line_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "cost_cents": self.cost_cents,
            "refund_cents": self.refund_cents,
        }
