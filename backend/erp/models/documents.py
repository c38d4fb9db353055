from __future__ import annotations

from ..extensions import db
from erp.ids import new_id
from erp.time_utils import to_utc_z, utcnow


TRANSFER_TYPE_SEND = "SEND"
TRANSFER_TYPE_REQUEST = "REQUEST"

TRANSFER_STATUS_REQUESTED = "REQUESTED"
TRANSFER_STATUS_PENDING = "PENDING"
TRANSFER_STATUS_IN_TRANSIT = "IN_TRANSIT"
TRANSFER_STATUS_COMPLETED = "COMPLETED"
TRANSFER_STATUS_CANCELLED = "CANCELLED"

VALID_TRANSFER_STATUSES = [
    TRANSFER_STATUS_REQUESTED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_IN_TRANSIT,
    TRANSFER_STATUS_COMPLETED,
    TRANSFER_STATUS_CANCELLED,
]


class Transfer(db.Model):
    """
    Inter-branch stock transfer document.

    LIFECYCLE:
    1. REQUESTED: Destination branch asked for stock (REQUEST type only)
    2. PENDING: Accepted by, or created at, the source branch
    3. IN_TRANSIT: Shipped; stock left the source branch
    4. COMPLETED: Received; stock entered the destination branch
    5. CANCELLED: Reachable from REQUESTED, PENDING or IN_TRANSIT

    Stock moves only at ship (source) and receive (destination).
    """
    __tablename__ = "transfers"
    __table_args__ = (
        db.CheckConstraint("from_branch_id <> to_branch_id", name="ck_transfers_distinct_branches"),
        db.Index("ix_transfers_from_status", "from_branch_id", "status"),
        db.Index("ix_transfers_to_status", "to_branch_id", "status"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("TRF"))

    from_branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False)
    to_branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False)

    type = db.Column(db.String(16), nullable=False)  # SEND, REQUEST
    status = db.Column(db.String(16), nullable=False, index=True)

    notes = db.Column(db.Text, nullable=True)

    # Actor attribution per step
    created_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    approved_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True)
    shipped_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True)
    completed_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True)
    cancelled_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    approved_at = db.Column(db.DateTime, nullable=True)
    shipped_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    cancellation_reason = db.Column(db.Text, nullable=True)

    from_branch = db.relationship("Branch", foreign_keys=[from_branch_id])
    to_branch = db.relationship("Branch", foreign_keys=[to_branch_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_branch_id": self.from_branch_id,
            "to_branch_id": self.to_branch_id,
            "type": self.type,
            "status": self.status,
            "notes": self.notes,
            "created_by": self.created_by,
            "approved_by": self.approved_by,
            "shipped_by": self.shipped_by,
            "completed_by": self.completed_by,
            "cancelled_by": self.cancelled_by,
            "created_at": to_utc_z(self.created_at),
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "shipped_at": to_utc_z(self.shipped_at) if self.shipped_at else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancellation_reason": self.cancellation_reason,
            "items": [item.to_dict() for item in self.items],
        }


class TransferItem(db.Model):
    __tablename__ = "transfer_items"
    __table_args__ = (
        db.UniqueConstraint("transfer_id", "product_id", name="uq_transfer_items_product"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("ITEM"))
    transfer_id = db.Column(db.String(64), db.ForeignKey("transfers.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)

    # Base-unit quantity
    quantity = db.Column(db.Float, nullable=False)

    transfer = db.relationship(
        "Transfer",
        backref=db.backref("items", lazy=True, cascade="all, delete-orphan", order_by="TransferItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transfer_id": self.transfer_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
        }
