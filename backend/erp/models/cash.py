from __future__ import annotations

from ..extensions import db
from erp.ids import new_id
from erp.time_utils import to_utc_z, utcnow


MOVEMENT_INCOME = "INCOME"
MOVEMENT_EXPENSE = "EXPENSE"

CATEGORY_SALE = "SALE"
CATEGORY_PURCHASE = "PURCHASE"
CATEGORY_CREDIT_PAYMENT = "CREDIT_PAYMENT"
CATEGORY_EXPENSE = "EXPENSE"
CATEGORY_TRANSFER = "TRANSFER"
CATEGORY_ADJUSTMENT = "ADJUSTMENT"

PAYMENT_CASH = "CASH"
PAYMENT_TRANSFER = "TRANSFER"
PAYMENT_CHECK = "CHECK"

VALID_MOVEMENT_TYPES = [MOVEMENT_INCOME, MOVEMENT_EXPENSE]
VALID_CATEGORIES = [
    CATEGORY_SALE,
    CATEGORY_PURCHASE,
    CATEGORY_CREDIT_PAYMENT,
    CATEGORY_EXPENSE,
    CATEGORY_TRANSFER,
    CATEGORY_ADJUSTMENT,
]
VALID_PAYMENT_METHODS = [PAYMENT_CASH, PAYMENT_TRANSFER, PAYMENT_CHECK]


class CashMovement(db.Model):
    """
    Append-only branch cash journal.

    Reversals are new compensating rows (opposite type, ADJUSTMENT category);
    rows are never edited or deleted. Branch balance is
    SUM(INCOME) - SUM(EXPENSE) over a date range.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_branch_created", "branch_id", "created_at"),
        db.CheckConstraint("amount > 0", name="ck_cash_movements_amount_positive"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("CASH"))
    branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False)

    type = db.Column(db.String(16), nullable=False)  # INCOME, EXPENSE
    category = db.Column(db.String(32), nullable=False, index=True)

    amount = db.Column(db.Integer, nullable=False)

    sale_id = db.Column(db.String(64), db.ForeignKey("sales.id"), nullable=True, index=True)
    purchase_id = db.Column(db.String(64), db.ForeignKey("purchases.id"), nullable=True, index=True)
    # Plain column: the account row is deleted on cancellation but its payments' cash stays
    credit_account_id = db.Column(db.String(64), nullable=True, index=True)

    payment_method = db.Column(db.String(16), nullable=False, default=PAYMENT_CASH)
    reference = db.Column(db.String(128), nullable=True)

    description = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def signed_amount(self) -> int:
        return self.amount if self.type == MOVEMENT_INCOME else -self.amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "type": self.type,
            "category": self.category,
            "amount": self.amount,
            "sale_id": self.sale_id,
            "purchase_id": self.purchase_id,
            "credit_account_id": self.credit_account_id,
            "payment_method": self.payment_method,
            "reference": self.reference,
            "description": self.description,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
