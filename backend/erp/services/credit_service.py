# Overview: Service-layer operations for receivable (CXC) and payable (CPP) accounts.

"""
Credit Ledger

WHY: Credit sales and purchases leave an amount owed that is settled over
time. Each account tracks total/paid/balance; payments are append-only and
roll up into the account.

DESIGN PRINCIPLES:
- Status is derived from (total_amount, paid_amount) by
  CreditAccount.apply_paid_amount(), the only writer of those fields.
- A CXC payment lowers the customer's current_debt by the same amount.
- Every payment appends a CREDIT_PAYMENT cash movement
  (INCOME for CXC, EXPENSE for CPP).
- An account can be removed only while nothing has been paid on it.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import CreditAccount, CreditPayment
from ..models.cash import MOVEMENT_INCOME, MOVEMENT_EXPENSE, CATEGORY_CREDIT_PAYMENT, VALID_PAYMENT_METHODS
from ..models.credit import (
    ACCOUNT_TYPE_CXC,
    ACCOUNT_TYPE_CPP,
    STATUS_PAID,
    VALID_ACCOUNT_TYPES,
    VALID_ACCOUNT_STATUSES,
)
from erp.errors import (
    AccountAlreadyPaidError,
    AccountHasPaymentsError,
    NotFoundError,
    PaymentExceedsBalanceError,
    ValidationError,
)
from . import cash_service, customer_service
from .access_service import Actor
from .concurrency import locked_get, run_in_transaction


# Fields a caller may change on an existing account; amounts and status
# only move through payments.
UPDATABLE_FIELDS = {"due_date", "invoice_number"}


def open_account(
    *,
    type: str,
    branch_id: str,
    total_amount: int,
    due_date: datetime,
    customer_id: str | None = None,
    supplier_id: str | None = None,
    sale_id: str | None = None,
    purchase_id: str | None = None,
    invoice_number: str | None = None,
) -> CreditAccount:
    """Create an account with nothing paid (no commit)."""
    if type not in VALID_ACCOUNT_TYPES:
        raise ValidationError(f"Invalid account type: {type}")
    if type == ACCOUNT_TYPE_CXC and not customer_id:
        raise ValidationError("CXC accounts require a customer")
    if type == ACCOUNT_TYPE_CPP and not supplier_id:
        raise ValidationError("CPP accounts require a supplier")
    if total_amount <= 0:
        raise ValidationError("Credit amount must be positive")

    account = CreditAccount(
        type=type,
        branch_id=branch_id,
        customer_id=customer_id,
        supplier_id=supplier_id,
        sale_id=sale_id,
        purchase_id=purchase_id,
        invoice_number=invoice_number,
        total_amount=total_amount,
        due_date=due_date,
    )
    account.apply_paid_amount(0)
    db.session.add(account)
    db.session.flush()
    return account


def get_account(account_id: str) -> CreditAccount:
    account = db.session.get(CreditAccount, account_id)
    if not account:
        raise NotFoundError(f"Credit account {account_id} not found")
    return account


def find_by_branch(
    branch_id: str | None,
    *,
    type: str | None = None,
    status: str | None = None,
) -> list[CreditAccount]:
    query = db.session.query(CreditAccount)
    if branch_id is not None:
        query = query.filter(CreditAccount.branch_id == branch_id)
    if type is not None:
        if type not in VALID_ACCOUNT_TYPES:
            raise ValidationError(f"Invalid account type: {type}")
        query = query.filter(CreditAccount.type == type)
    if status is not None:
        if status not in VALID_ACCOUNT_STATUSES:
            raise ValidationError(f"Invalid account status: {status}")
        query = query.filter(CreditAccount.status == status)
    return query.order_by(CreditAccount.due_date.asc()).all()


def find_by_sale(sale_id: str) -> CreditAccount | None:
    return db.session.query(CreditAccount).filter_by(sale_id=sale_id, type=ACCOUNT_TYPE_CXC).first()


def find_by_purchase(purchase_id: str) -> CreditAccount | None:
    return db.session.query(CreditAccount).filter_by(purchase_id=purchase_id, type=ACCOUNT_TYPE_CPP).first()


def update_account(account_id: str, **changes) -> CreditAccount:
    def _op():
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        account = locked_get(CreditAccount, account_id)
        if not account:
            raise NotFoundError(f"Credit account {account_id} not found")
        for field, value in changes.items():
            setattr(account, field, value)
        return account

    return run_in_transaction(_op)


def get_payment_history(account_id: str) -> list[CreditPayment]:
    get_account(account_id)
    return (
        db.session.query(CreditPayment)
        .filter_by(credit_account_id=account_id)
        .order_by(CreditPayment.created_at.asc(), CreditPayment.id.asc())
        .all()
    )


def register_payment(
    account_id: str,
    *,
    amount: int,
    actor: Actor,
    payment_method: str = "CASH",
    reference: str | None = None,
    notes: str | None = None,
) -> CreditPayment:
    """
    Apply a payment to an account.

    Raises:
        AccountAlreadyPaidError: account status is PAGADO
        PaymentExceedsBalanceError: amount > balance_amount
        ValidationError: non-positive amount or unknown payment method
    """
    def _op():
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Payment amount must be a positive integer")
        if payment_method not in VALID_PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method: {payment_method}. Must be one of {VALID_PAYMENT_METHODS}")

        account = locked_get(CreditAccount, account_id)
        if not account:
            raise NotFoundError(f"Credit account {account_id} not found")

        if account.status == STATUS_PAID:
            raise AccountAlreadyPaidError("This account is already fully paid")

        if amount > account.balance_amount:
            raise PaymentExceedsBalanceError(
                f"Payment of {amount} exceeds the outstanding balance of {account.balance_amount}",
                details={"amount": amount, "balance_amount": account.balance_amount},
            )

        payment = CreditPayment(
            credit_account_id=account.id,
            amount=amount,
            payment_method=payment_method,
            reference=reference,
            notes=notes,
            created_by=actor.user_id,
        )
        db.session.add(payment)

        account.apply_paid_amount(account.paid_amount + amount)

        if account.type == ACCOUNT_TYPE_CXC and account.customer_id:
            customer_service.adjust_debt(account.customer_id, -amount)

        cash_service.record_movement(
            branch_id=account.branch_id,
            type=MOVEMENT_INCOME if account.type == ACCOUNT_TYPE_CXC else MOVEMENT_EXPENSE,
            category=CATEGORY_CREDIT_PAYMENT,
            amount=amount,
            credit_account_id=account.id,
            payment_method=payment_method,
            reference=reference,
            description=f"Payment on {account.type} {account.id}",
            notes=notes,
            created_by=actor.user_id,
        )
        db.session.flush()

        current_app.logger.info(
            "Payment %s of %s registered on %s %s (balance %s, %s)",
            payment.id, amount, account.type, account.id, account.balance_amount, account.status,
        )
        return payment

    return run_in_transaction(_op)


def remove_unpaid_account(account: CreditAccount) -> None:
    """
    Delete an account nothing has been paid on (no commit).

    For CXC the customer's debt is reduced by the full total first.
    """
    if account.paid_amount > 0:
        raise AccountHasPaymentsError(
            f"Cannot cancel an account with payments. Paid amount: {account.paid_amount}",
            details={"credit_account_id": account.id, "paid_amount": account.paid_amount},
        )

    if account.type == ACCOUNT_TYPE_CXC and account.customer_id:
        customer_service.adjust_debt(account.customer_id, -account.total_amount)

    db.session.delete(account)
    db.session.flush()


def cancel_account(account_id: str, actor: Actor) -> None:
    def _op():
        account = locked_get(CreditAccount, account_id)
        if not account:
            raise NotFoundError(f"Credit account {account_id} not found")
        remove_unpaid_account(account)
        current_app.logger.info("%s %s cancelled by %s", account.type, account_id, actor.user_id)

    run_in_transaction(_op)
