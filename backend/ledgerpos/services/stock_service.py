# Overview: Service-layer operations for products and stock; the only writer of Product.stock.

"""
Stock Ledger

Product.stock is mutated in place, so every change goes through
increment_stock()/decrement_stock() on a row fetched with
lock_for_update(). Product.version_id makes a lost race on backends
without row locks surface as StaleDataError, which run_atomic() retries.

INVARIANT: stock >= 0 after every operation. A decrement that would go
negative raises InsufficientStock and nothing in the unit is applied.
"""

from __future__ import annotations

import logging
import secrets

from flask import current_app
from sqlalchemy import func

from ..errors import InsufficientStock, InvalidQuantity, NotFound, ValidationFailed
from ..extensions import db
from ..identity import Actor
from ..models import Product
from .archive_service import soft_delete
from .authorization_service import require_allowed
from .concurrency import lock_for_update, run_atomic


logger = logging.getLogger(__name__)


def get_product_for_update(product_id: int) -> Product:
    product = lock_for_update(
        db.session.query(Product).filter(Product.id == product_id, Product.is_deleted.is_(False))
    ).first()
    if product is None:
        raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def increment_stock(product: Product, quantity: int) -> Product:
    if quantity <= 0:
        raise InvalidQuantity("Quantity must be positive", details={"product_id": product.id, "quantity": quantity})
    product.stock = product.stock + quantity
    return product


def decrement_stock(product: Product, quantity: int) -> Product:
    if quantity <= 0:
        raise InvalidQuantity("Quantity must be positive", details={"product_id": product.id, "quantity": quantity})
    if quantity > product.stock:
        raise InsufficientStock(product.id, product.name, quantity, product.stock)
    product.stock = product.stock - quantity
    return product


def generate_product_code() -> str:
    """Random 6-digit code not used by any product."""
    while True:
        code = str(100000 + secrets.randbelow(900000))
        if db.session.query(Product.id).filter_by(code=code).first() is None:
            return code


def _check_name_available(name: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(
        func.lower(Product.name) == name.lower(),
        Product.is_deleted.is_(False),
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ValidationFailed(f"A product named '{name}' already exists", details={"name": name})


def _check_prices(**prices) -> None:
    for key, value in prices.items():
        if value is not None and value < 0:
            raise ValidationFailed(f"{key} cannot be negative", details={key: value})


def new_product(
    *,
    name: str,
    wholesale_cost_cents: int = 0,
    retail_price_cents: int = 0,
    offer_price_cents: int | None = None,
    branch_id: int | None = None,
    description: str | None = None,
    low_stock_threshold: int | None = None,
) -> Product:
    """
    Build and add a zero-stock product to the current unit of work.

    Used directly by the purchase processor for inline product creation.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Product name is required")
    _check_name_available(name)
    _check_prices(
        wholesale_cost_cents=wholesale_cost_cents,
        retail_price_cents=retail_price_cents,
        offer_price_cents=offer_price_cents,
    )
    if low_stock_threshold is None:
        low_stock_threshold = current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 3)

    product = Product(
        code=generate_product_code(),
        name=name,
        description=description,
        branch_id=branch_id,
        wholesale_cost_cents=wholesale_cost_cents,
        retail_price_cents=retail_price_cents,
        offer_price_cents=offer_price_cents,
        stock=0,
        low_stock_threshold=low_stock_threshold,
    )
    db.session.add(product)
    db.session.flush()
    return product


def create_product(*, actor: Actor, **fields) -> Product:
    require_allowed(actor, "manage_products")
    fields.setdefault("branch_id", actor.branch_id)

    product = run_atomic(lambda: new_product(**fields), operation="create_product")
    logger.info("Product created: id=%s code=%s by=%s", product.id, product.code, actor.username)
    return product


def update_product(
    *,
    actor: Actor,
    product_id: int,
    name: str | None = None,
    description: str | None = None,
    wholesale_cost_cents: int | None = None,
    retail_price_cents: int | None = None,
    offer_price_cents: int | None = None,
    clear_offer: bool = False,
    low_stock_threshold: int | None = None,
) -> Product:
    """
    Edit catalog fields. Stock is not editable here.
    """
    require_allowed(actor, "manage_products")

    def _op():
        product = get_product_for_update(product_id)
        _check_prices(
            wholesale_cost_cents=wholesale_cost_cents,
            retail_price_cents=retail_price_cents,
            offer_price_cents=offer_price_cents,
        )
        if name is not None:
            new_name = name.strip()
            if not new_name:
                raise ValidationFailed("Product name is required")
            _check_name_available(new_name, exclude_id=product.id)
            product.name = new_name
        if description is not None:
            product.description = description
        if wholesale_cost_cents is not None:
            product.wholesale_cost_cents = wholesale_cost_cents
        if retail_price_cents is not None:
            product.retail_price_cents = retail_price_cents
        if clear_offer:
            product.offer_price_cents = None
        elif offer_price_cents is not None:
            product.offer_price_cents = offer_price_cents
        if low_stock_threshold is not None:
            if low_stock_threshold < 0:
                raise ValidationFailed("low_stock_threshold cannot be negative")
            product.low_stock_threshold = low_stock_threshold
        return product

    product = run_atomic(_op, operation="update_product")
    logger.info("Product updated: id=%s by=%s", product.id, actor.username)
    return product


def delete_product(*, actor: Actor, product_id: int, reason: str) -> Product:
    require_allowed(actor, "delete_product")

    def _op():
        product = get_product_for_update(product_id)
        return soft_delete(product, item_type="product", actor=actor, reason=reason)

    product = run_atomic(_op, operation="delete_product")
    logger.info("Product deleted: id=%s by=%s", product.id, actor.username)
    return product


def list_products(*, branch_id: int | None = None, include_shared: bool = True) -> list[Product]:
    query = db.session.query(Product).filter(Product.is_deleted.is_(False))
    if branch_id is not None:
        if include_shared:
            query = query.filter((Product.branch_id == branch_id) | (Product.branch_id.is_(None)))
        else:
            query = query.filter(Product.branch_id == branch_id)
    return query.order_by(Product.name.asc()).all()


def low_stock_products(*, branch_id: int | None = None) -> list[Product]:
    """Products at or below their low-stock threshold."""
    query = db.session.query(Product).filter(
        Product.is_deleted.is_(False),
        Product.stock <= Product.low_stock_threshold,
    )
    if branch_id is not None:
        query = query.filter((Product.branch_id == branch_id) | (Product.branch_id.is_(None)))
    return query.order_by(Product.stock.asc(), Product.name.asc()).all()
