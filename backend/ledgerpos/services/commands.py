# Overview: Structured requests accepted by the ledger processors, with JSON parsing.

"""
Processor Requests

Each processor takes one of these dataclasses. from_dict() builds them
from a decoded JSON body and raises ValidationFailed for anything
malformed, so the route layer never validates fields itself.

All money is integer cents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ..errors import InvalidQuantity, ValidationFailed


REFUND_METHODS = ("cash", "debt_deduction")


def _require(data: dict, key: str):
    if key not in data or data[key] is None:
        raise ValidationFailed(f"'{key}' is required", details={"field": key})
    return data[key]


def _int(value, key: str) -> int:
    if isinstance(value, bool):
        raise ValidationFailed(f"'{key}' must be an integer", details={"field": key})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"'{key}' must be an integer", details={"field": key})


def _optional_int(data: dict, key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    return _int(value, key)


def _quantity(value) -> int:
    quantity = _int(value, "quantity")
    if quantity <= 0:
        raise InvalidQuantity("Quantity must be greater than zero", details={"quantity": quantity})
    return quantity


def _lines(data: dict) -> list:
    lines = data.get("lines")
    if not isinstance(lines, list) or not lines:
        raise ValidationFailed("At least one line is required", details={"field": "lines"})
    for line in lines:
        if not isinstance(line, dict):
            raise ValidationFailed("Each line must be an object", details={"field": "lines"})
    return lines


@dataclass(frozen=True)
class DiscountRequest:
    """
    type "fixed": value is an amount in cents.
    type "percentage": value is a percent of the gross total (0-100).
    """
    type: str = "fixed"
    value: Decimal = Decimal("0")

    @classmethod
    def from_dict(cls, data: dict | None) -> "DiscountRequest":
        if not data:
            return cls()
        kind = data.get("type", "fixed")
        if kind not in ("fixed", "percentage"):
            raise ValidationFailed(f"Unknown discount type '{kind}'", details={"type": kind})
        try:
            value = Decimal(str(data.get("value", 0)))
        except InvalidOperation:
            raise ValidationFailed("Discount value must be a number")
        return cls(type=kind, value=value)

    def amount_cents(self, gross_cents: int) -> int:
        """Discount in cents; 0 <= discount <= gross or ValidationFailed."""
        if not self.value.is_finite() or self.value < 0:
            raise ValidationFailed("Discount cannot be negative", details={"value": str(self.value)})

        if self.type == "percentage":
            if self.value > 100:
                raise ValidationFailed("Percentage discount cannot exceed 100", details={"value": str(self.value)})
            amount = (Decimal(gross_cents) * self.value / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        else:
            amount = self.value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)

        amount = int(amount)
        if amount > gross_cents:
            raise ValidationFailed(
                "Discount exceeds invoice total",
                details={"discount_cents": amount, "gross_cents": gross_cents},
            )
        return amount


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: int
    quantity: int
    # None sells at the product's effective price
    unit_price_cents: int | None = None


@dataclass(frozen=True)
class SaleRequest:
    lines: list[SaleLineRequest]
    discount: DiscountRequest = field(default_factory=DiscountRequest)
    customer_name: str | None = None
    customer_phone: str | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "SaleRequest":
        lines = []
        for line in _lines(data):
            unit_price = _optional_int(line, "unit_price_cents")
            if unit_price is not None and unit_price < 0:
                raise ValidationFailed("unit_price_cents cannot be negative")
            lines.append(
                SaleLineRequest(
                    product_id=_int(_require(line, "product_id"), "product_id"),
                    quantity=_quantity(_require(line, "quantity")),
                    unit_price_cents=unit_price,
                )
            )
        return cls(
            lines=lines,
            discount=DiscountRequest.from_dict(data.get("discount")),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class PurchaseLineRequest:
    """
    Either product_id names an existing product or product_name defines a
    new one inline (created with zero stock before the increment).
    """
    quantity: int
    cost_cents: int
    product_id: int | None = None
    product_name: str | None = None
    retail_price_cents: int | None = None
    offer_price_cents: int | None = None


@dataclass(frozen=True)
class PurchaseRequest:
    supplier_id: int
    lines: list[PurchaseLineRequest]
    paid_cents: int = 0
    supplier_invoice_no: str | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict, supplier_id: int | None = None) -> "PurchaseRequest":
        lines = []
        for line in _lines(data):
            product_id = _optional_int(line, "product_id")
            product_name = (line.get("product_name") or "").strip() or None
            if product_id is None and product_name is None:
                raise ValidationFailed("Each purchase line needs product_id or product_name")
            cost = _int(_require(line, "cost_cents"), "cost_cents")
            retail = _optional_int(line, "retail_price_cents")
            offer = _optional_int(line, "offer_price_cents")
            for key, value in (("cost_cents", cost), ("retail_price_cents", retail), ("offer_price_cents", offer)):
                if value is not None and value < 0:
                    raise ValidationFailed(f"{key} cannot be negative", details={key: value})
            lines.append(
                PurchaseLineRequest(
                    quantity=_quantity(_require(line, "quantity")),
                    cost_cents=cost,
                    product_id=product_id,
                    product_name=product_name,
                    retail_price_cents=retail,
                    offer_price_cents=offer,
                )
            )
        if supplier_id is None:
            supplier_id = _int(_require(data, "supplier_id"), "supplier_id")
        return cls(
            supplier_id=supplier_id,
            lines=lines,
            paid_cents=_int(data.get("paid_cents", 0), "paid_cents"),
            supplier_invoice_no=data.get("supplier_invoice_no"),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class ReturnLineRequest:
    line_id: int
    quantity: int


def _return_lines(data: dict) -> list[ReturnLineRequest]:
    lines = []
    for line in _lines(data):
        quantity = _int(_require(line, "quantity"), "quantity")
        if quantity < 0:
            raise InvalidQuantity("Return quantity cannot be negative", details={"quantity": quantity})
        lines.append(ReturnLineRequest(line_id=_int(_require(line, "line_id"), "line_id"), quantity=quantity))
    return lines


@dataclass(frozen=True)
class SalesReturnRequest:
    """Zero-quantity lines are ignored; all-zero is rejected."""
    invoice_id: int
    lines: list[ReturnLineRequest]
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "SalesReturnRequest":
        return cls(
            invoice_id=_int(_require(data, "invoice_id"), "invoice_id"),
            lines=_return_lines(data),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class PurchaseReturnRequest:
    purchase_id: int
    lines: list[ReturnLineRequest]
    refund_method: str = "cash"
    is_money_received: bool = False
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "PurchaseReturnRequest":
        method = data.get("refund_method", "cash")
        if method not in REFUND_METHODS:
            raise ValidationFailed(f"Unknown refund method '{method}'", details={"refund_method": method})
        return cls(
            purchase_id=_int(_require(data, "purchase_id"), "purchase_id"),
            lines=_return_lines(data),
            refund_method=method,
            is_money_received=bool(data.get("is_money_received", False)),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class SupplierPaymentRequest:
    supplier_id: int
    amount_cents: int
    purchase_id: int | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict, supplier_id: int) -> "SupplierPaymentRequest":
        return cls(
            supplier_id=supplier_id,
            amount_cents=_int(_require(data, "amount_cents"), "amount_cents"),
            purchase_id=_optional_int(data, "purchase_id"),
            notes=data.get("notes"),
        )


def int_field(data: dict, key: str, *, required: bool = False, default: int | None = None) -> int | None:
    """Integer field from a JSON body, for the simpler admin/read endpoints."""
    if required:
        return _int(_require(data, key), key)
    value = _optional_int(data, key)
    return default if value is None else value
