from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import SoftDeleteMixin


class Shift(db.Model):
    """
    Cashier work session used for drawer reconciliation.

    State machine: open -> closed (terminal, never reopened).

    expected_cents, actual_cents and difference_cents are written once at
    close and never recalculated: they are a snapshot, not a live view.
    At most one open shift per user is enforced by a partial unique index.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_one_open_per_user",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    status = db.Column(db.String(8), nullable=False, default="open")  # open, closed

    opening_cents = db.Column(db.Integer, nullable=False, default=0)
    expected_cents = db.Column(db.Integer, nullable=True)
    actual_cents = db.Column(db.Integer, nullable=True)
    difference_cents = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "branch_id": self.branch_id,
            "status": self.status,
            "opening_cents": self.opening_cents,
            "expected_cents": self.expected_cents,
            "actual_cents": self.actual_cents,
            "difference_cents": self.difference_cents,
            "notes": self.notes,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
        }


class TreasuryLog(db.Model):
    """
    Append-only cash movement.

    The drawer balance for any branch or shift is the signed sum of these
    rows; it is never stored as a mutable counter. Corrections are new rows
    with the opposite direction, never edits.
    """
    __tablename__ = "treasury_logs"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_treasury_logs_amount_positive"),
        db.CheckConstraint("direction IN ('in', 'out')", name="ck_treasury_logs_direction"),
        db.Index("ix_treasury_logs_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)

    direction = db.Column(db.String(3), nullable=False)
    # sale, sales_return, purchase, purchase_return, supplier_payment,
    # expense, expense_reversal, invoice_void, purchase_void
    source = db.Column(db.String(32), nullable=False)
    reference_id = db.Column(db.Integer, nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    @property
    def signed_amount_cents(self) -> int:
        return self.amount_cents if self.direction == "in" else -self.amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "shift_id": self.shift_id,
            "direction": self.direction,
            "source": self.source,
            "reference_id": self.reference_id,
            "amount_cents": self.amount_cents,
            "signed_amount_cents": self.signed_amount_cents,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(SoftDeleteMixin, db.Model):
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "category": self.category,
            "notes": self.notes,
            "branch_id": self.branch_id,
            "shift_id": self.shift_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            **self.soft_delete_dict(),
        }
