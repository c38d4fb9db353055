from __future__ import annotations

from ..extensions import db
from erp.ids import new_id
from erp.time_utils import to_utc_z, utcnow


SALE_TYPE_CASH = "CASH"
SALE_TYPE_CREDIT = "CREDIT"

SALE_STATUS_ACTIVE = "ACTIVE"
SALE_STATUS_CANCELLED = "CANCELLED"


class Sale(db.Model):
    """
    Sale document.

    Created once with its items; afterwards only status (and the
    cancellation stamps) may change. CASH sales are backed by a SALE cash
    movement, CREDIT sales by a CXC credit account.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_branch_created", "branch_id", "created_at"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("SALE"))
    branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False, index=True)
    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=True, index=True)

    type = db.Column(db.String(16), nullable=False)  # CASH, CREDIT
    payment_method = db.Column(db.String(16), nullable=True)  # CASH, TRANSFER, CHECK

    # Minor currency units
    subtotal = db.Column(db.Integer, nullable=False, default=0)
    tax = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_ACTIVE, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    cancelled_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    customer = db.relationship("Customer")

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "branch_id": self.branch_id,
            "customer_id": self.customer_id,
            "type": self.type,
            "payment_method": self.payment_method,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "discount": self.discount,
            "total": self.total,
            "status": self.status,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "cancelled_by": self.cancelled_by,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Sale line.

    quantity/unit_price are in the unit the customer bought; base_quantity is
    what left the stock ledger and what a cancellation puts back.
    """
    __tablename__ = "sale_items"

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("ITEM"))
    sale_id = db.Column(db.String(64), db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    subtotal = db.Column(db.Integer, nullable=False)

    # Unit conversion metadata (null when sold in the base unit)
    unit_conversion_id = db.Column(db.String(64), db.ForeignKey("unit_conversions.id"), nullable=True)
    unit_name = db.Column(db.String(64), nullable=True)
    conversion_factor = db.Column(db.Float, nullable=True)
    base_quantity = db.Column(db.Float, nullable=False)

    sale = db.relationship(
        "Sale",
        backref=db.backref("items", lazy=True, cascade="all, delete-orphan", order_by="SaleItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "subtotal": self.subtotal,
            "unit_conversion_id": self.unit_conversion_id,
            "unit_name": self.unit_name,
            "conversion_factor": self.conversion_factor,
            "base_quantity": self.base_quantity,
        }
