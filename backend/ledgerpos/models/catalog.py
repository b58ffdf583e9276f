from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import SoftDeleteMixin


class Branch(db.Model):
    """
    Physical shop location.

    Products, users, invoices and treasury logs are affiliated to a branch.
    A branch is closed temporarily rather than deleted.
    """
    __tablename__ = "branches"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    operational_number = db.Column(db.String(32), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")  # active, closed_temp

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "operational_number": self.operational_number,
            "location": self.location,
            "phone": self.phone,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class Product(SoftDeleteMixin, db.Model):
    """
    Product master data and live stock count.

    stock is one of the only two things mutated in place (the other being a
    purchase's remaining amount). It only moves through stock_service, under
    a row lock, and the CHECK constraint backs the non-negative invariant.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        db.Index("ix_products_branch_deleted", "branch_id", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # NULL branch means the product is shared by every branch
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    # Authoritative storage in cents
    wholesale_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    retail_price_cents = db.Column(db.Integer, nullable=False, default=0)
    offer_price_cents = db.Column(db.Integer, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=3)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    branch = db.relationship("Branch", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def effective_price_cents(self) -> int:
        if self.offer_price_cents is not None and self.offer_price_cents > 0:
            return self.offer_price_cents
        return self.retail_price_cents

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "branch_id": self.branch_id,
            "wholesale_cost_cents": self.wholesale_cost_cents,
            "retail_price_cents": self.retail_price_cents,
            "offer_price_cents": self.offer_price_cents,
            "effective_price_cents": self.effective_price_cents,
            "stock": self.stock,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            **self.soft_delete_dict(),
        }
