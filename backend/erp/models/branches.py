from __future__ import annotations

from ..extensions import db
from erp.ids import new_id
from erp.time_utils import to_utc_z, utcnow


class Branch(db.Model):
    """
    Physical location with its own stock and cash position.

    Branches share the product catalog, customers and suppliers; everything
    else (stock rows, cash movements, credit accounts, sales, purchases) is
    scoped by branch_id.
    """
    __tablename__ = "branches"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_branches_code"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("BRANCH"))
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=False)  # e.g. "DIR", "JIN"
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Branch id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "address": self.address,
            "phone": self.phone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
