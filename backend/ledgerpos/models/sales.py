from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import SoftDeleteMixin


class Invoice(SoftDeleteMixin, db.Model):
    """
    Completed sale.

    INVARIANTS:
    - net_cents = gross_cents - discount_cents
    - gross_cents = sum(line.subtotal_cents)

    IMMUTABLE: ledger fields never change after creation. last_return_at is
    bookkeeping only; touching it bumps version_id so concurrent returns
    against the same invoice serialize.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.CheckConstraint("net_cents = gross_cents - discount_cents", name="ck_invoices_net"),
        db.Index("ix_invoices_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    creator_username = db.Column(db.String(64), nullable=True)

    customer_name = db.Column(db.String(255), nullable=False, default="Cash customer")
    customer_phone = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    discount_type = db.Column(db.String(16), nullable=False, default="fixed")  # fixed, percentage
    discount_input = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    gross_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    net_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="completed")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_return_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        order_by="InvoiceLine.position",
        cascade="all, delete-orphan",
    )
    shift = db.relationship("Shift", backref=db.backref("invoices", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "branch_id": self.branch_id,
            "shift_id": self.shift_id,
            "created_by_user_id": self.created_by_user_id,
            "creator_username": self.creator_username,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "notes": self.notes,
            "discount_type": self.discount_type,
            "discount_input": str(self.discount_input) if self.discount_input is not None else None,
            "gross_cents": self.gross_cents,
            "discount_cents": self.discount_cents,
            "net_cents": self.net_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
            **self.soft_delete_dict(),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """Line item with the cost snapshot taken at sale time."""
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    cost_cents_at_sale = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "position": self.position,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "cost_cents_at_sale": self.cost_cents_at_sale,
            "subtotal_cents": self.subtotal_cents,
        }


class ReturnRecord(SoftDeleteMixin, db.Model):
    """
    Customer return against one invoice.

    Lines refund at the invoiced unit price. total_refund_cents is their sum.
    """
    __tablename__ = "sales_returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    total_refund_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    invoice = db.relationship("Invoice", backref=db.backref("returns", lazy=True))
    lines = db.relationship("ReturnLine", backref="return_record", lazy=True, cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "branch_id": self.branch_id,
            "shift_id": self.shift_id,
            "created_by_user_id": self.created_by_user_id,
            "total_refund_cents": self.total_refund_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "lines": [line.to_dict() for line in self.lines],
            **self.soft_delete_dict(),
        }


class ReturnLine(db.Model):
    __tablename__ = "sales_return_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sales_return_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("sales_returns.id"), nullable=False, index=True)
    invoice_line_id = db.Column(db.Integer, db.ForeignKey("invoice_lines.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    cost_cents_at_sale = db.Column(db.Integer, nullable=False)
    refund_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "invoice_line_id": self.invoice_line_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "cost_cents_at_sale": self.cost_cents_at_sale,
            "refund_cents": self.refund_cents,
        }
