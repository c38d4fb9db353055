from __future__ import annotations

from ..extensions import db
from erp.ids import new_id
from erp.time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Customer or sub-distributor buying on cash or credit.

    current_debt is a running balance maintained incrementally by the credit
    workflows (CXC opened, paid, reversed); it is never recomputed from the
    credit_accounts table.
    """
    __tablename__ = "customers"

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("CUST"))
    name = db.Column(db.String(255), nullable=False)
    contact_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    tax_id = db.Column(db.String(64), nullable=True)

    type = db.Column(db.String(16), nullable=False, default="RETAIL")  # RETAIL, WHOLESALE

    # Minor currency units
    credit_limit = db.Column(db.Integer, nullable=False, default=0)
    current_debt = db.Column(db.Integer, nullable=False, default=0)
    credit_days = db.Column(db.Integer, nullable=False, default=30)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def available_credit(self) -> int:
        return self.credit_limit - self.current_debt

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "tax_id": self.tax_id,
            "type": self.type,
            "credit_limit": self.credit_limit,
            "current_debt": self.current_debt,
            "available_credit": self.available_credit,
            "credit_days": self.credit_days,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """Wholesale supplier; credit_days drives the due date of CPP accounts."""
    __tablename__ = "suppliers"

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("SUPP"))
    name = db.Column(db.String(255), nullable=False)
    contact_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    tax_id = db.Column(db.String(64), nullable=True)

    credit_days = db.Column(db.Integer, nullable=False, default=30)
    credit_limit = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "tax_id": self.tax_id,
            "credit_days": self.credit_days,
            "credit_limit": self.credit_limit,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
