# Overview: Flask API routes for the product catalog.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor
from ..services import authorization_service, stock_service
from ..services.commands import int_field


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_actor
def list_products_route():
    """Products visible to a branch (its own plus shared ones)."""
    branch_id = request.args.get("branch_id", type=int)
    products = stock_service.list_products(branch_id=branch_id)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/low-stock")
@require_actor
def low_stock_route():
    authorization_service.require_allowed(g.actor, "view_reports", resource=request.path)
    products = stock_service.low_stock_products(branch_id=request.args.get("branch_id", type=int))
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.post("")
@require_actor
def create_product_route():
    """
    Request body:
    {
        "name": "Cable 2m",
        "wholesale_cost_cents": 800,
        "retail_price_cents": 1500,
        "offer_price_cents": null,
        "branch_id": null,
        "low_stock_threshold": 3
    }
    """
    payload = request.get_json(silent=True) or {}
    fields = {
        "name": payload.get("name"),
        "description": payload.get("description"),
        "wholesale_cost_cents": int_field(payload, "wholesale_cost_cents", default=0),
        "retail_price_cents": int_field(payload, "retail_price_cents", default=0),
        "offer_price_cents": int_field(payload, "offer_price_cents"),
        "low_stock_threshold": int_field(payload, "low_stock_threshold"),
    }
    if "branch_id" in payload:
        fields["branch_id"] = int_field(payload, "branch_id")
    product = stock_service.create_product(actor=g.actor, **fields)
    return jsonify({"product": product.to_dict()}), 201


@products_bp.patch("/<int:product_id>")
@require_actor
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    product = stock_service.update_product(
        actor=g.actor,
        product_id=product_id,
        name=payload.get("name"),
        description=payload.get("description"),
        wholesale_cost_cents=int_field(payload, "wholesale_cost_cents"),
        retail_price_cents=int_field(payload, "retail_price_cents"),
        offer_price_cents=int_field(payload, "offer_price_cents"),
        clear_offer=bool(payload.get("clear_offer", False)),
        low_stock_threshold=int_field(payload, "low_stock_threshold"),
    )
    return jsonify({"product": product.to_dict()}), 200


@products_bp.delete("/<int:product_id>")
@require_actor
def delete_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    product = stock_service.delete_product(actor=g.actor, product_id=product_id, reason=payload.get("reason"))
    return jsonify({"product": product.to_dict()}), 200
