# Overview: Service-layer operations for the treasury log and drawer balance projections.

"""
Treasury Log

The drawer balance is never stored. It is the signed sum of append-only
TreasuryLog rows for whatever branch, shift or time window is asked about.
Corrections are new rows in the opposite direction.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func

from ..errors import ValidationFailed
from ..extensions import db
from ..identity import Actor
from ..models import TreasuryLog
from ..time_utils import utcnow


SOURCES = {
    "sale",
    "sales_return",
    "invoice_void",
    "purchase",
    "purchase_return",
    "purchase_void",
    "supplier_payment",
    "expense",
    "expense_reversal",
}


def append_treasury_log(
    *,
    direction: str,
    source: str,
    amount_cents: int,
    actor: Actor,
    branch_id: int | None,
    shift_id: int | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
) -> TreasuryLog | None:
    """
    Append a cash movement to the current unit of work.

    Does not commit. A zero amount records nothing and returns None.
    """
    if direction not in ("in", "out"):
        raise ValidationFailed(f"Invalid treasury direction '{direction}'")
    if source not in SOURCES:
        raise ValidationFailed(f"Invalid treasury source '{source}'")
    if amount_cents < 0:
        raise ValidationFailed("Treasury amount cannot be negative", details={"amount_cents": amount_cents})
    if amount_cents == 0:
        return None

    log = TreasuryLog(
        direction=direction,
        source=source,
        amount_cents=amount_cents,
        branch_id=branch_id,
        shift_id=shift_id,
        reference_id=reference_id,
        notes=notes,
        created_by_user_id=actor.id,
        created_at=utcnow(),
    )
    db.session.add(log)
    return log


def _signed_sum():
    return func.coalesce(
        func.sum(
            case(
                (TreasuryLog.direction == "in", TreasuryLog.amount_cents),
                else_=-TreasuryLog.amount_cents,
            )
        ),
        0,
    )


def _filtered(query, *, branch_id, shift_id, start, end, source=None):
    if branch_id is not None:
        query = query.filter(TreasuryLog.branch_id == branch_id)
    if shift_id is not None:
        query = query.filter(TreasuryLog.shift_id == shift_id)
    if start is not None:
        query = query.filter(TreasuryLog.created_at >= start)
    if end is not None:
        query = query.filter(TreasuryLog.created_at < end)
    if source is not None:
        query = query.filter(TreasuryLog.source == source)
    return query


def drawer_balance(
    *,
    branch_id: int | None = None,
    shift_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> int:
    """
    Signed sum of treasury logs in cents.

    Filters combine; start is inclusive, end exclusive. No filters gives
    the balance across all branches.
    """
    query = _filtered(
        db.session.query(_signed_sum()),
        branch_id=branch_id,
        shift_id=shift_id,
        start=start,
        end=end,
    )
    return int(query.scalar() or 0)


def treasury_entries(
    *,
    branch_id: int | None = None,
    shift_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    source: str | None = None,
    limit: int = 200,
) -> list[TreasuryLog]:
    query = _filtered(
        db.session.query(TreasuryLog),
        branch_id=branch_id,
        shift_id=shift_id,
        start=start,
        end=end,
        source=source,
    )
    return query.order_by(TreasuryLog.created_at.asc(), TreasuryLog.id.asc()).limit(limit).all()


def totals_by_source(*, shift_id: int | None = None, branch_id: int | None = None) -> dict[str, int]:
    """Signed totals grouped by source, for shift summaries and reports."""
    query = _filtered(
        db.session.query(TreasuryLog.source, _signed_sum()),
        branch_id=branch_id,
        shift_id=shift_id,
        start=None,
        end=None,
    ).group_by(TreasuryLog.source)
    return {source: int(total) for source, total in query.all()}
