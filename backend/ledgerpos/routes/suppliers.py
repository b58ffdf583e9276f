# Overview: Flask API routes for suppliers, statements and supplier payments.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import authorization_service, supplier_service
from ..services.commands import SupplierPaymentRequest


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.post("")
@require_actor
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    supplier = supplier_service.create_supplier(
        actor=g.actor,
        name=payload.get("name"),
        phone=payload.get("phone"),
        tax_number=payload.get("tax_number"),
        commercial_register=payload.get("commercial_register"),
    )
    return jsonify({"supplier": supplier.to_dict()}), 201


@suppliers_bp.get("")
@require_actor
def list_suppliers_route():
    suppliers = supplier_service.list_suppliers()
    return jsonify({"suppliers": [s.to_dict() for s in suppliers]}), 200


@suppliers_bp.delete("/<int:supplier_id>")
@require_actor
def delete_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    supplier = supplier_service.delete_supplier(actor=g.actor, supplier_id=supplier_id, reason=payload.get("reason"))
    return jsonify({"supplier": supplier.to_dict()}), 200


@suppliers_bp.get("/<int:supplier_id>/statement")
@require_actor
def supplier_statement_route(supplier_id: int):
    """Derived totals: supplied, paid, current debt, and the drift cross-check."""
    authorization_service.require_allowed(g.actor, "view_reports", resource=request.path)
    return jsonify(supplier_service.supplier_statement(supplier_id)), 200


@suppliers_bp.post("/<int:supplier_id>/payments")
@require_actor
def record_supplier_payment_route(supplier_id: int):
    """
    Request body:
    {
        "amount_cents": 10000,
        "purchase_id": 3,    (optional; omitted pays oldest purchases first)
        "notes": "bank transfer"
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        payment_request = SupplierPaymentRequest.from_dict(payload, supplier_id=supplier_id)
        payment = supplier_service.record_supplier_payment(actor=g.actor, request=payment_request)
        return jsonify({"payment": payment.to_dict()}), 201
    except LedgerError:
        raise
    except Exception:
        current_app.logger.exception("Failed to record supplier payment")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>/payments")
@require_actor
def list_supplier_payments_route(supplier_id: int):
    authorization_service.require_allowed(g.actor, "view_reports", resource=request.path)
    payments = supplier_service.list_payments(supplier_id)
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200
