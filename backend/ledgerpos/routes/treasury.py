# Overview: Flask API routes for treasury balances and expenses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor
from ..errors import ValidationFailed
from ..services import authorization_service, expense_service, treasury_service
from ..services.commands import int_field
from ..time_utils import parse_window


treasury_bp = Blueprint("treasury", __name__, url_prefix="/api/treasury")


def _window():
    try:
        return parse_window(request.args.get("start"), request.args.get("end"))
    except ValueError as e:
        raise ValidationFailed(f"Invalid time window: {e}")


@treasury_bp.get("/balance")
@require_actor
def drawer_balance_route():
    """
    Signed sum of treasury logs.

    Query: branch_id, shift_id, start, end (all optional)
    """
    authorization_service.require_allowed(g.actor, "view_treasury", resource=request.path)
    start, end = _window()
    balance = treasury_service.drawer_balance(
        branch_id=request.args.get("branch_id", type=int),
        shift_id=request.args.get("shift_id", type=int),
        start=start,
        end=end,
    )
    return jsonify({"balance_cents": balance}), 200


@treasury_bp.get("/entries")
@require_actor
def treasury_entries_route():
    authorization_service.require_allowed(g.actor, "view_treasury", resource=request.path)
    start, end = _window()
    entries = treasury_service.treasury_entries(
        branch_id=request.args.get("branch_id", type=int),
        shift_id=request.args.get("shift_id", type=int),
        start=start,
        end=end,
        source=request.args.get("source"),
        limit=request.args.get("limit", default=200, type=int),
    )
    return jsonify({"entries": [e.to_dict() for e in entries]}), 200


@treasury_bp.post("/expenses")
@require_actor
def record_expense_route():
    """Body: {"description": "Cleaning", "amount_cents": 2500, "category": "supplies"}"""
    payload = request.get_json(silent=True) or {}
    expense = expense_service.record_expense(
        actor=g.actor,
        description=payload.get("description"),
        amount_cents=int_field(payload, "amount_cents", required=True),
        category=payload.get("category"),
        notes=payload.get("notes"),
    )
    return jsonify({"expense": expense.to_dict()}), 201


@treasury_bp.get("/expenses")
@require_actor
def list_expenses_route():
    authorization_service.require_allowed(g.actor, "view_treasury", resource=request.path)
    expenses = expense_service.list_expenses(
        branch_id=request.args.get("branch_id", type=int),
        shift_id=request.args.get("shift_id", type=int),
    )
    return jsonify({"expenses": [e.to_dict() for e in expenses]}), 200


@treasury_bp.delete("/expenses/<int:expense_id>")
@require_actor
def delete_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}
    expense = expense_service.delete_expense(actor=g.actor, expense_id=expense_id, reason=payload.get("reason"))
    return jsonify({"expense": expense.to_dict()}), 200
