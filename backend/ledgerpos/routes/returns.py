# Overview: Flask API routes for sales and purchase returns.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import return_service
from ..services.commands import PurchaseReturnRequest, SalesReturnRequest


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("/sales")
@require_actor
def process_sales_return_route():
    """
    Request body:
    {
        "invoice_id": 12,
        "lines": [{"line_id": 31, "quantity": 1}],
        "notes": "damaged box"
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        return_request = SalesReturnRequest.from_dict(payload)
        record = return_service.process_sales_return(actor=g.actor, request=return_request)
        return jsonify({"return": record.to_dict()}), 201
    except LedgerError:
        raise
    except Exception:
        current_app.logger.exception("Failed to process sales return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/purchases")
@require_actor
def process_purchase_return_route():
    """
    Request body:
    {
        "purchase_id": 3,
        "lines": [{"line_id": 7, "quantity": 2}],
        "refund_method": "cash" | "debt_deduction",
        "is_money_received": false
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        return_request = PurchaseReturnRequest.from_dict(payload)
        record = return_service.process_purchase_return(actor=g.actor, request=return_request)
        return jsonify({"purchase_return": record.to_dict()}), 201
    except LedgerError:
        raise
    except Exception:
        current_app.logger.exception("Failed to process purchase return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/purchases/<int:return_id>/received")
@require_actor
def mark_refund_received_route(return_id: int):
    record = return_service.mark_refund_received(actor=g.actor, return_id=return_id)
    return jsonify({"purchase_return": record.to_dict()}), 200
