from __future__ import annotations

from ..extensions import db
from erp.ids import new_id
from erp.time_utils import to_utc_z, utcnow


ACCOUNT_TYPE_CXC = "CXC"  # cuenta por cobrar: customer owes the business
ACCOUNT_TYPE_CPP = "CPP"  # cuenta por pagar: business owes a supplier

STATUS_PENDING = "PENDIENTE"
STATUS_PARTIAL = "PAGADO_PARCIAL"
STATUS_PAID = "PAGADO"

VALID_ACCOUNT_TYPES = [ACCOUNT_TYPE_CXC, ACCOUNT_TYPE_CPP]
VALID_ACCOUNT_STATUSES = [STATUS_PENDING, STATUS_PARTIAL, STATUS_PAID]


def derive_credit_status(total_amount: int, paid_amount: int) -> str:
    """Status is a pure function of the two amounts."""
    if paid_amount <= 0:
        return STATUS_PENDING
    if paid_amount >= total_amount:
        return STATUS_PAID
    return STATUS_PARTIAL


class CreditAccount(db.Model):
    """
    Receivable (CXC) or payable (CPP) opened by a credit sale or purchase.

    INVARIANTS:
    - balance_amount == total_amount - paid_amount
    - status == derive_credit_status(total_amount, paid_amount)
    Both hold because apply_paid_amount() is the only writer of paid_amount,
    balance_amount and status.
    """
    __tablename__ = "credit_accounts"
    __table_args__ = (
        db.Index("ix_credit_accounts_branch_type_status", "branch_id", "type", "status"),
        db.CheckConstraint("paid_amount >= 0", name="ck_credit_paid_non_negative"),
        db.CheckConstraint("paid_amount <= total_amount", name="ck_credit_paid_within_total"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("CREDIT"))
    type = db.Column(db.String(8), nullable=False)  # CXC, CPP

    branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False, index=True)
    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=True, index=True)
    supplier_id = db.Column(db.String(64), db.ForeignKey("suppliers.id"), nullable=True, index=True)

    # Originating transaction
    sale_id = db.Column(db.String(64), db.ForeignKey("sales.id"), nullable=True, index=True)
    purchase_id = db.Column(db.String(64), db.ForeignKey("purchases.id"), nullable=True, index=True)
    invoice_number = db.Column(db.String(64), nullable=True)

    total_amount = db.Column(db.Integer, nullable=False)
    paid_amount = db.Column(db.Integer, nullable=False, default=0)
    balance_amount = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING)

    due_date = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def counterparty_id(self) -> str | None:
        return self.customer_id if self.type == ACCOUNT_TYPE_CXC else self.supplier_id

    def apply_paid_amount(self, paid_amount: int) -> None:
        self.paid_amount = paid_amount
        self.balance_amount = self.total_amount - paid_amount
        self.status = derive_credit_status(self.total_amount, paid_amount)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "branch_id": self.branch_id,
            "customer_id": self.customer_id,
            "supplier_id": self.supplier_id,
            "sale_id": self.sale_id,
            "purchase_id": self.purchase_id,
            "invoice_number": self.invoice_number,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "balance_amount": self.balance_amount,
            "status": self.status,
            "due_date": to_utc_z(self.due_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CreditPayment(db.Model):
    """
    Payment applied to a credit account.

    IMMUTABLE: never updated, deleted or partially reversed.
    """
    __tablename__ = "credit_payments"

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_id("PAY"))
    credit_account_id = db.Column(db.String(64), db.ForeignKey("credit_accounts.id"), nullable=False, index=True)

    amount = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default="CASH")
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    credit_account = db.relationship(
        "CreditAccount",
        backref=db.backref("payments", lazy=True, order_by="CreditPayment.created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "credit_account_id": self.credit_account_id,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "reference": self.reference,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
