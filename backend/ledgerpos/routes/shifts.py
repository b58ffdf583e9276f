# Overview: Flask API routes for shift open/close and drawer reconciliation.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor
from ..services import authorization_service, shift_service
from ..services.commands import int_field


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("")
@require_actor
def open_shift_route():
    """Body: {"opening_cents": 50000, "notes": null}"""
    payload = request.get_json(silent=True) or {}
    shift = shift_service.open_shift(
        actor=g.actor,
        opening_cents=int_field(payload, "opening_cents", default=0),
        notes=payload.get("notes"),
    )
    return jsonify({"shift": shift.to_dict()}), 201


@shifts_bp.post("/<int:shift_id>/close")
@require_actor
def close_shift_route(shift_id: int):
    """
    Body: {"actual_cents": 79000, "notes": "..."}

    Response carries the expected balance and the difference snapshot.
    """
    payload = request.get_json(silent=True) or {}
    shift = shift_service.close_shift(
        actor=g.actor,
        shift_id=shift_id,
        actual_cents=int_field(payload, "actual_cents", required=True),
        notes=payload.get("notes"),
    )
    return jsonify({"shift": shift.to_dict()}), 200


@shifts_bp.get("/current")
@require_actor
def current_shift_route():
    shift = shift_service.require_open_shift(g.actor)
    return jsonify({
        "shift": shift.to_dict(),
        "expected_cents": shift_service.expected_balance_cents(shift),
    }), 200


@shifts_bp.get("/<int:shift_id>/summary")
@require_actor
def shift_summary_route(shift_id: int):
    shift = shift_service.get_shift(shift_id)
    if shift.user_id != g.actor.id:
        authorization_service.require_allowed(g.actor, "view_reports", resource=request.path)
    return jsonify(shift_service.shift_summary(shift_id)), 200
