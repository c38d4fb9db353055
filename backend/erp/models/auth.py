from __future__ import annotations

from ..extensions import db
from erp.ids import new_id
from erp.time_utils import to_utc_z, utcnow


ROLE_ADMIN = "ADMIN"
ROLE_MANAGER = "GERENTE"
ROLE_CASHIER = "CAJERO"

VALID_ROLES = [ROLE_ADMIN, ROLE_MANAGER, ROLE_CASHIER]


class User(db.Model):
    """
    Staff member acting on the ledger.

    ADMIN reaches every branch; GERENTE and CAJERO act only on their own
    branch_id. Credentials live with the upstream authentication layer; this
    table only carries what the workflows need to attribute and authorize.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_users_username"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("USER"))
    username = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_CASHIER)

    branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    branch = db.relationship("Branch", backref=db.backref("users", lazy=True))

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "branch_id": self.branch_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
