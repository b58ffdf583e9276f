# Overview: Shift lifecycle and drawer reconciliation.

"""
Shift Management and Drawer Reconciliation

State machine: open -> closed (terminal).

- One open shift per user (checked here, backed by a partial unique index)
- Expected balance = opening + signed sum of treasury logs tagged with the
  shift (sales in, sales returns out, expenses out, voids out)
- expected/actual/difference are written once at close and never
  recalculated afterwards
"""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import NoOpenShift, NotFound, ShiftStateError, ValidationFailed
from ..extensions import db
from ..identity import Actor
from ..models import Expense, Invoice, ReturnRecord, Shift
from ..time_utils import utcnow
from .authorization_service import is_super_admin, require_allowed
from .concurrency import lock_for_update, run_atomic
from .treasury_service import drawer_balance, totals_by_source


logger = logging.getLogger(__name__)


def get_open_shift(user_id: int) -> Shift | None:
    return db.session.query(Shift).filter_by(user_id=user_id, status="open").first()


def require_open_shift(actor: Actor) -> Shift:
    shift = get_open_shift(actor.id)
    if shift is None:
        raise NoOpenShift(
            f"No open shift for user '{actor.username}'",
            details={"user_id": actor.id, "branch_id": actor.branch_id},
        )
    return shift


def expected_balance_cents(shift: Shift) -> int:
    """Live expected drawer balance (opening + tagged treasury logs)."""
    return shift.opening_cents + drawer_balance(shift_id=shift.id)


def open_shift(*, actor: Actor, opening_cents: int = 0, notes: str | None = None) -> Shift:
    """
    Open a shift for the actor.

    Raises:
        ShiftStateError: the actor already has an open shift
    """
    require_allowed(actor, "open_shift")
    if opening_cents < 0:
        raise ValidationFailed("Opening balance cannot be negative", details={"opening_cents": opening_cents})

    def _op():
        existing = get_open_shift(actor.id)
        if existing is not None:
            raise ShiftStateError(
                f"User '{actor.username}' already has open shift {existing.id}",
                details={"shift_id": existing.id},
            )
        shift = Shift(
            user_id=actor.id,
            branch_id=actor.branch_id,
            status="open",
            opening_cents=opening_cents,
            notes=notes,
            opened_at=utcnow(),
        )
        db.session.add(shift)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ShiftStateError(f"User '{actor.username}' already has an open shift") from exc
        return shift

    shift = run_atomic(_op, operation="open_shift")
    logger.info("Shift opened: id=%s user=%s opening=%s", shift.id, actor.username, opening_cents)
    return shift


def close_shift(*, actor: Actor, shift_id: int, actual_cents: int, notes: str | None = None) -> Shift:
    """
    Close a shift with the counted drawer balance.

    Only the shift's owner (or the super-admin) may close it.

    Raises:
        NotFound: unknown shift
        ShiftStateError: already closed, or someone else's shift
    """
    config = require_allowed(actor, "close_shift")
    if actual_cents < 0:
        raise ValidationFailed("Actual balance cannot be negative", details={"actual_cents": actual_cents})

    def _op():
        shift = lock_for_update(db.session.query(Shift).filter(Shift.id == shift_id)).first()
        if shift is None:
            raise NotFound(f"Shift {shift_id} not found", details={"shift_id": shift_id})
        if shift.user_id != actor.id and not is_super_admin(actor, config):
            raise ShiftStateError(
                "Cannot close another user's shift",
                details={"shift_id": shift.id, "owner_user_id": shift.user_id},
            )
        if shift.status != "open":
            raise ShiftStateError(f"Shift {shift.id} is already closed", details={"shift_id": shift.id})

        expected = expected_balance_cents(shift)
        shift.status = "closed"
        shift.expected_cents = expected
        shift.actual_cents = actual_cents
        shift.difference_cents = actual_cents - expected
        shift.closed_at = utcnow()
        if notes:
            shift.notes = f"{shift.notes}\n{notes}" if shift.notes else notes
        return shift

    shift = run_atomic(_op, operation="close_shift")
    log = logger.warning if shift.difference_cents else logger.info
    log(
        "Shift closed: id=%s user=%s expected=%s actual=%s difference=%s",
        shift.id, actor.username, shift.expected_cents, shift.actual_cents, shift.difference_cents,
    )
    return shift


def get_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if shift is None:
        raise NotFound(f"Shift {shift_id} not found", details={"shift_id": shift_id})
    return shift


def list_shifts(*, user_id: int | None = None, status: str | None = None, limit: int = 100) -> list[Shift]:
    query = db.session.query(Shift)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    if status is not None:
        query = query.filter_by(status=status)
    return query.order_by(Shift.opened_at.desc(), Shift.id.desc()).limit(limit).all()


def shift_summary(shift_id: int) -> dict:
    """
    Sales, returns and expenses for a shift, with its balances.

    For an open shift expected_cents is the live running balance and
    actual/difference are None. For a closed shift the stored snapshot is
    returned unchanged.
    """
    shift = get_shift(shift_id)

    sales_count, sales_total = db.session.query(
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.net_cents), 0),
    ).filter(Invoice.shift_id == shift.id, Invoice.is_deleted.is_(False)).one()

    returns_total = db.session.query(
        func.coalesce(func.sum(ReturnRecord.total_refund_cents), 0)
    ).filter(ReturnRecord.shift_id == shift.id, ReturnRecord.is_deleted.is_(False)).scalar()

    expenses_total = db.session.query(
        func.coalesce(func.sum(Expense.amount_cents), 0)
    ).filter(Expense.shift_id == shift.id, Expense.is_deleted.is_(False)).scalar()

    if shift.status == "open":
        expected = expected_balance_cents(shift)
    else:
        expected = shift.expected_cents

    return {
        "shift": shift.to_dict(),
        "sales_count": int(sales_count),
        "sales_total_cents": int(sales_total),
        "returns_total_cents": int(returns_total or 0),
        "expenses_total_cents": int(expenses_total or 0),
        "treasury_by_source": totals_by_source(shift_id=shift.id),
        "expected_cents": expected,
        "actual_cents": shift.actual_cents,
        "difference_cents": shift.difference_cents,
    }
