# Overview: Flask API routes for purchases; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import authorization_service, purchase_service
from ..services.commands import PurchaseRequest


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_actor
def process_purchase_route():
    """
    Receive goods from a supplier.

    Request body:
    {
        "supplier_id": 1,
        "supplier_invoice_no": "INV-77",
        "paid_cents": 10000,
        "lines": [
            {"product_id": 4, "quantity": 10, "cost_cents": 2000},
            {"product_name": "New item", "quantity": 5, "cost_cents": 800, "retail_price_cents": 1200}
        ]
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        purchase_request = PurchaseRequest.from_dict(payload)
        purchase = purchase_service.process_purchase(actor=g.actor, request=purchase_request)
        return jsonify({"purchase": purchase.to_dict()}), 201
    except LedgerError:
        raise
    except Exception:
        current_app.logger.exception("Failed to process purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
@require_actor
def list_purchases_route():
    authorization_service.require_allowed(g.actor, "view_reports", resource=request.path)
    purchases = purchase_service.list_purchases(
        supplier_id=request.args.get("supplier_id", type=int),
        limit=request.args.get("limit", default=100, type=int),
    )
    return jsonify({"purchases": [p.to_dict(include_lines=False) for p in purchases]}), 200


@purchases_bp.get("/<int:purchase_id>")
@require_actor
def get_purchase_route(purchase_id: int):
    authorization_service.require_allowed(g.actor, "view_reports", resource=request.path)
    purchase = purchase_service.get_purchase(purchase_id)
    return jsonify({
        "purchase": purchase.to_dict(),
        "returned_quantities": purchase_service.returned_purchase_quantities(purchase.id),
    }), 200


@purchases_bp.delete("/<int:purchase_id>")
@require_actor
def delete_purchase_route(purchase_id: int):
    """Body: {"reason": "..."}"""
    payload = request.get_json(silent=True) or {}
    purchase = purchase_service.delete_purchase(actor=g.actor, purchase_id=purchase_id, reason=payload.get("reason"))
    return jsonify({"purchase": purchase.to_dict()}), 200
