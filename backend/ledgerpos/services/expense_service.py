# Overview: Expenses paid out of the drawer, and their reversal.

from __future__ import annotations

import logging

from ..errors import NotFound, ValidationFailed
from ..extensions import db
from ..identity import Actor
from ..models import Expense, Shift
from ..time_utils import utcnow
from .archive_service import soft_delete
from .authorization_service import require_allowed
from .concurrency import lock_for_update, run_atomic
from .shift_service import get_open_shift
from .treasury_service import append_treasury_log


logger = logging.getLogger(__name__)


def record_expense(
    *,
    actor: Actor,
    description: str,
    amount_cents: int,
    category: str | None = None,
    notes: str | None = None,
) -> Expense:
    """
    Pay an expense out of the drawer.

    Tagged with the actor's open shift when there is one, so it lowers that
    shift's expected balance.
    """
    require_allowed(actor, "record_expense")
    description = (description or "").strip()
    if not description:
        raise ValidationFailed("Expense description is required")
    if amount_cents <= 0:
        raise ValidationFailed("Expense amount must be positive", details={"amount_cents": amount_cents})

    def _op():
        shift = get_open_shift(actor.id)
        expense = Expense(
            description=description,
            amount_cents=amount_cents,
            category=category,
            notes=notes,
            branch_id=actor.branch_id,
            shift_id=shift.id if shift is not None else None,
            created_by_user_id=actor.id,
            created_at=utcnow(),
        )
        db.session.add(expense)
        db.session.flush()

        append_treasury_log(
            direction="out",
            source="expense",
            amount_cents=amount_cents,
            actor=actor,
            branch_id=expense.branch_id,
            shift_id=expense.shift_id,
            reference_id=expense.id,
            notes=description,
        )
        return expense

    expense = run_atomic(_op, operation="record_expense")
    logger.info("Expense recorded: id=%s amount=%s shift=%s by=%s", expense.id, amount_cents, expense.shift_id, actor.username)
    return expense


def delete_expense(*, actor: Actor, expense_id: int, reason: str) -> Expense:
    """
    Reverse an expense: soft-delete, archive, and a TreasuryLog 'in'
    (expense_reversal). The reversal counts toward the original shift only
    while that shift is still open.
    """
    require_allowed(actor, "delete_expense")

    def _op():
        expense = lock_for_update(db.session.query(Expense).filter(Expense.id == expense_id)).first()
        if expense is None or expense.is_deleted:
            raise NotFound(f"Expense {expense_id} not found", details={"expense_id": expense_id})

        shift_id = None
        if expense.shift_id is not None:
            shift = db.session.get(Shift, expense.shift_id)
            if shift is not None and shift.status == "open":
                shift_id = shift.id

        append_treasury_log(
            direction="in",
            source="expense_reversal",
            amount_cents=expense.amount_cents,
            actor=actor,
            branch_id=expense.branch_id,
            shift_id=shift_id,
            reference_id=expense.id,
            notes=reason,
        )
        return soft_delete(expense, item_type="expense", actor=actor, reason=reason)

    expense = run_atomic(_op, operation="delete_expense")
    logger.info("Expense deleted: id=%s by=%s", expense.id, actor.username)
    return expense


def list_expenses(*, branch_id: int | None = None, shift_id: int | None = None, limit: int = 100) -> list[Expense]:
    query = db.session.query(Expense).filter(Expense.is_deleted.is_(False))
    if branch_id is not None:
        query = query.filter(Expense.branch_id == branch_id)
    if shift_id is not None:
        query = query.filter(Expense.shift_id == shift_id)
    return query.order_by(Expense.created_at.desc(), Expense.id.desc()).limit(limit).all()
