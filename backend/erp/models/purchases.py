from __future__ import annotations

from ..extensions import db
from erp.ids import new_id
from erp.time_utils import to_utc_z, utcnow


PURCHASE_TYPE_CASH = "CASH"
PURCHASE_TYPE_CREDIT = "CREDIT"

PURCHASE_STATUS_COMPLETED = "COMPLETED"
PURCHASE_STATUS_CANCELLED = "CANCELLED"


class Purchase(db.Model):
    """
    Purchase of goods from a supplier into one branch.

    Items and totals are immutable after creation; notes and invoice_number
    may be edited for a short window (PURCHASE_EDIT_WINDOW_DAYS).
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_branch_created", "branch_id", "created_at"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("PURCH"))
    branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False, index=True)
    supplier_id = db.Column(db.String(64), db.ForeignKey("suppliers.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)  # CASH, CREDIT
    payment_method = db.Column(db.String(16), nullable=True)

    subtotal = db.Column(db.Integer, nullable=False, default=0)
    tax = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=PURCHASE_STATUS_COMPLETED, index=True)
    invoice_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    cancelled_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    supplier = db.relationship("Supplier")

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "branch_id": self.branch_id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "type": self.type,
            "payment_method": self.payment_method,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "discount": self.discount,
            "total": self.total,
            "status": self.status,
            "invoice_number": self.invoice_number,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "cancelled_by": self.cancelled_by,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    __tablename__ = "purchase_items"

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("ITEM"))
    purchase_id = db.Column(db.String(64), db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Float, nullable=False)
    unit_cost = db.Column(db.Integer, nullable=False)
    subtotal = db.Column(db.Integer, nullable=False)

    purchase = db.relationship(
        "Purchase",
        backref=db.backref("items", lazy=True, cascade="all, delete-orphan", order_by="PurchaseItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_cost": self.unit_cost,
            "subtotal": self.subtotal,
        }
