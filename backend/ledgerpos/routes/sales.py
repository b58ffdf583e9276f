# Overview: Flask API routes for sales; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import authorization_service, sales_service
from ..services.commands import SaleRequest


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_actor
def process_sale_route():
    """
    Sell lines within the caller's open shift.

    Request body:
    {
        "lines": [{"product_id": 1, "quantity": 3, "unit_price_cents": 1500}],
        "discount": {"type": "percentage", "value": "10"},
        "customer_name": "Cash customer",
        "customer_phone": null,
        "notes": null
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        sale_request = SaleRequest.from_dict(payload)
        invoice = sales_service.process_sale(actor=g.actor, request=sale_request)
        return jsonify({"invoice": invoice.to_dict()}), 201
    except LedgerError:
        raise
    except Exception:
        current_app.logger.exception("Failed to process sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_actor
def list_invoices_route():
    authorization_service.require_allowed(g.actor, "view_reports", resource=request.path)
    invoices = sales_service.list_invoices(
        branch_id=request.args.get("branch_id", type=int),
        shift_id=request.args.get("shift_id", type=int),
        limit=request.args.get("limit", default=100, type=int),
    )
    return jsonify({"invoices": [i.to_dict(include_lines=False) for i in invoices]}), 200


@sales_bp.get("/<int:invoice_id>")
@require_actor
def get_invoice_route(invoice_id: int):
    authorization_service.require_allowed(g.actor, "view_reports", resource=request.path)
    invoice = sales_service.get_invoice(invoice_id)
    return jsonify({
        "invoice": invoice.to_dict(),
        "returned_quantities": sales_service.returned_quantities(invoice.id),
    }), 200


@sales_bp.delete("/<int:invoice_id>")
@require_actor
def delete_invoice_route(invoice_id: int):
    """Body: {"reason": "..."}"""
    payload = request.get_json(silent=True) or {}
    invoice = sales_service.delete_invoice(actor=g.actor, invoice_id=invoice_id, reason=payload.get("reason"))
    return jsonify({"invoice": invoice.to_dict()}), 200
