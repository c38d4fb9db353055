from __future__ import annotations

from ..extensions import db
from erp.ids import new_id
from erp.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Catalog entry shared by every branch.

    Prices are authoritative in minor currency units. ``unit`` names the base
    unit all stock quantities are expressed in.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_active", "is_active"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("PROD"))
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=True)

    cost_price = db.Column(db.Integer, nullable=False, default=0)
    retail_price = db.Column(db.Integer, nullable=False, default=0)
    wholesale_price = db.Column(db.Integer, nullable=False, default=0)

    unit = db.Column(db.String(32), nullable=False, default="unidad")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "cost_price": self.cost_price,
            "retail_price": self.retail_price,
            "wholesale_price": self.wholesale_price,
            "unit": self.unit,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class UnitConversion(db.Model):
    """
    Alternative unit of measure for a product.

    conversion_factor is the number of base units in one of these units
    (e.g. a "Quintal" of a product stocked in pounds has factor 100).
    """
    __tablename__ = "unit_conversions"

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("UNIT"))
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)

    unit_name = db.Column(db.String(64), nullable=False)
    unit_symbol = db.Column(db.String(16), nullable=False)
    conversion_factor = db.Column(db.Float, nullable=False)
    unit_type = db.Column(db.String(16), nullable=False, default="SALE")  # BASE, PURCHASE, SALE

    # Optional per-unit prices (minor units); fall back to base price * factor
    retail_price = db.Column(db.Integer, nullable=True)
    wholesale_price = db.Column(db.Integer, nullable=True)

    sales_type = db.Column(db.String(16), nullable=False, default="BOTH")  # RETAIL, WHOLESALE, BOTH

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("unit_conversions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "unit_name": self.unit_name,
            "unit_symbol": self.unit_symbol,
            "conversion_factor": self.conversion_factor,
            "unit_type": self.unit_type,
            "retail_price": self.retail_price,
            "wholesale_price": self.wholesale_price,
            "sales_type": self.sales_type,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Stock(db.Model):
    """
    Quantity on hand of one product at one branch.

    INVARIANT: quantity >= 0. Decrements go through a conditional UPDATE in
    stock_service so the check and the write are a single statement.
    """
    __tablename__ = "stock"
    __table_args__ = (
        db.UniqueConstraint("product_id", "branch_id", name="uq_stock_product_branch"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
        db.Index("ix_stock_branch", "branch_id"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("STOCK"))
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False)

    # Base-unit quantity; fractional when sold by converted units
    quantity = db.Column(db.Float, nullable=False, default=0)
    min_stock = db.Column(db.Float, nullable=False, default=10)
    max_stock = db.Column(db.Float, nullable=False, default=1000)

    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", backref=db.backref("stock_rows", lazy=True))
    branch = db.relationship("Branch")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "branch_id": self.branch_id,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "max_stock": self.max_stock,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockAdjustment(db.Model):
    """
    Append-only audit trail of manual stock corrections.

    IMMUTABLE: rows are never updated or deleted.
    """
    __tablename__ = "stock_adjustments"

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("ADJ"))
    stock_id = db.Column(db.String(64), db.ForeignKey("stock.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), nullable=False)
    branch_id = db.Column(db.String(64), nullable=False, index=True)

    previous_quantity = db.Column(db.Float, nullable=False)
    new_quantity = db.Column(db.Float, nullable=False)
    reason = db.Column(db.String(255), nullable=False)

    created_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_id": self.stock_id,
            "product_id": self.product_id,
            "branch_id": self.branch_id,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "difference": self.new_quantity - self.previous_quantity,
            "reason": self.reason,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
