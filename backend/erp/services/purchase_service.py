# Overview: Purchase workflow: stock in, CPP account or cash out.

from __future__ import annotations

import secrets
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import Branch, Product, Purchase, PurchaseItem
from ..models.cash import MOVEMENT_EXPENSE, CATEGORY_PURCHASE, PAYMENT_CASH, VALID_PAYMENT_METHODS
from ..models.credit import ACCOUNT_TYPE_CPP
from ..models.purchases import (
    PURCHASE_TYPE_CASH,
    PURCHASE_TYPE_CREDIT,
    PURCHASE_STATUS_CANCELLED,
)
from erp.errors import (
    AccountHasPaymentsError,
    NotFoundError,
    PurchaseAlreadyCancelledError,
    PurchaseTooOldToEditError,
    ValidationError,
)
from erp.time_utils import business_today, due_date_after, utcnow
from erp.validation import require_amount_in_range, require_quantity
from . import cash_service, credit_service, customer_service, stock_service
from .access_service import Actor
from .concurrency import locked_get, run_in_transaction


EDITABLE_FIELDS = {"notes", "invoice_number"}


def generate_invoice_number() -> str:
    """INV-{YYYYMMDD}-{RANDOM} using the business calendar date."""
    return f"INV-{business_today():%Y%m%d}-{secrets.token_hex(3).upper()}"


def create_purchase(
    *,
    branch_id: str,
    supplier_id: str,
    items: list[dict],
    actor: Actor,
    type: str = PURCHASE_TYPE_CASH,
    payment_method: str | None = None,
    invoice_number: str | None = None,
    tax: int = 0,
    discount: int = 0,
    notes: str | None = None,
) -> Purchase:
    """
    Record goods received from a supplier.

    Items carry product_id, quantity (base unit) and unit_cost. Stock is
    incremented per item; CREDIT purchases open a CPP account due in the
    supplier's credit days, CASH purchases append a PURCHASE expense.
    """
    def _op():
        if type not in (PURCHASE_TYPE_CASH, PURCHASE_TYPE_CREDIT):
            raise ValidationError(f"Invalid purchase type: {type}")
        if not items:
            raise ValidationError("A purchase needs at least one item")
        if payment_method is not None and payment_method not in VALID_PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method: {payment_method}. Must be one of {VALID_PAYMENT_METHODS}")
        if not db.session.get(Branch, branch_id):
            raise NotFoundError(f"Branch {branch_id} not found")
        supplier = customer_service.get_supplier(supplier_id)

        lines = []
        for index, item in enumerate(items):
            quantity = require_quantity(item["quantity"], f"items[{index}].quantity")
            product = db.session.get(Product, item["product_id"])
            if not product:
                raise NotFoundError(f"Product {item['product_id']} not found")
            line_subtotal = require_amount_in_range(
                int(round(quantity * item["unit_cost"])), f"items[{index}].subtotal",
            )
            lines.append((product, quantity, item["unit_cost"], line_subtotal))

        subtotal = require_amount_in_range(sum(line[3] for line in lines), "subtotal")
        total = require_amount_in_range(subtotal + tax - discount, "total")
        if total < 0:
            raise ValidationError("Discount cannot exceed subtotal plus tax")

        purchase = Purchase(
            branch_id=branch_id,
            supplier_id=supplier.id,
            type=type,
            payment_method=payment_method or (PAYMENT_CASH if type == PURCHASE_TYPE_CASH else None),
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            total=total,
            invoice_number=(invoice_number or "").strip() or generate_invoice_number(),
            notes=notes,
            created_by=actor.user_id,
        )
        db.session.add(purchase)
        for product, quantity, unit_cost, line_subtotal in lines:
            purchase.items.append(PurchaseItem(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_cost=unit_cost,
                subtotal=line_subtotal,
            ))
        db.session.flush()

        for product, quantity, _, _ in lines:
            stock_service.add_stock(product.id, branch_id, quantity)

        if type == PURCHASE_TYPE_CREDIT:
            credit_service.open_account(
                type=ACCOUNT_TYPE_CPP,
                branch_id=branch_id,
                supplier_id=supplier.id,
                purchase_id=purchase.id,
                invoice_number=purchase.invoice_number,
                total_amount=total,
                due_date=due_date_after(supplier.credit_days or current_app.config["DEFAULT_CREDIT_DAYS"]),
            )
        elif total > 0:
            cash_service.record_movement(
                branch_id=branch_id,
                type=MOVEMENT_EXPENSE,
                category=CATEGORY_PURCHASE,
                amount=total,
                purchase_id=purchase.id,
                payment_method=purchase.payment_method,
                reference=purchase.invoice_number,
                description=f"Purchase {purchase.invoice_number} from {supplier.name}",
                created_by=actor.user_id,
            )

        current_app.logger.info(
            "Purchase %s (%s) created at %s by %s: %s %s",
            purchase.id, purchase.invoice_number, branch_id, actor.user_id, type, total,
        )
        return purchase

    return run_in_transaction(_op)


def update_purchase(purchase_id: str, actor: Actor, **changes) -> Purchase:
    """Edit notes / invoice_number within PURCHASE_EDIT_WINDOW_DAYS of creation."""
    def _op():
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Only notes and invoice_number can be edited, got: {', '.join(sorted(unknown))}"
            )
        purchase = locked_get(Purchase, purchase_id)
        if not purchase:
            raise NotFoundError(f"Purchase {purchase_id} not found")
        if purchase.status == PURCHASE_STATUS_CANCELLED:
            raise PurchaseAlreadyCancelledError("Cancelled purchases cannot be edited")

        window = timedelta(days=current_app.config["PURCHASE_EDIT_WINDOW_DAYS"])
        if utcnow() - purchase.created_at > window:
            raise PurchaseTooOldToEditError(
                f"Purchases can only be edited within {window.days} days of creation"
            )

        if "notes" in changes:
            purchase.notes = changes["notes"]
        if "invoice_number" in changes and changes["invoice_number"]:
            purchase.invoice_number = changes["invoice_number"]
            account = credit_service.find_by_purchase(purchase.id)
            if account is not None:
                account.invoice_number = purchase.invoice_number
        db.session.flush()

        current_app.logger.info("Purchase %s edited by %s: %s", purchase.id, actor.user_id, sorted(changes))
        return purchase

    return run_in_transaction(_op)


def cancel_purchase(purchase_id: str, actor: Actor) -> Purchase:
    """
    Reverse a purchase: take the goods back out of stock and undo the money.

    Raises:
        PurchaseAlreadyCancelledError
        AccountHasPaymentsError: the CPP has payments
        InsufficientStockError: part of the goods already left the branch
    """
    def _op():
        purchase = locked_get(Purchase, purchase_id)
        if not purchase:
            raise NotFoundError(f"Purchase {purchase_id} not found")
        if purchase.status == PURCHASE_STATUS_CANCELLED:
            raise PurchaseAlreadyCancelledError("This purchase is already cancelled")

        account = None
        if purchase.type == PURCHASE_TYPE_CREDIT:
            account = credit_service.find_by_purchase(purchase.id)
            if account is not None and account.paid_amount > 0:
                raise AccountHasPaymentsError(
                    f"Cannot cancel a purchase with payments. Paid amount: {account.paid_amount}",
                    details={"credit_account_id": account.id, "paid_amount": account.paid_amount},
                )

        required: dict[str, float] = {}
        for item in purchase.items:
            required[item.product_id] = required.get(item.product_id, 0) + item.quantity
        stock_service.require_available(required, purchase.branch_id)

        for item in purchase.items:
            stock_service.remove_stock(
                item.product_id, purchase.branch_id, item.quantity,
                product_label=item.product_name,
            )

        if account is not None:
            credit_service.remove_unpaid_account(account)
        elif purchase.type == PURCHASE_TYPE_CASH and purchase.total > 0:
            cash_service.record_reversal(
                MOVEMENT_EXPENSE,
                branch_id=purchase.branch_id,
                amount=purchase.total,
                purchase_id=purchase.id,
                payment_method=purchase.payment_method,
                reference=purchase.invoice_number,
                description=f"Cancellation of purchase {purchase.invoice_number}",
                created_by=actor.user_id,
            )

        purchase.status = PURCHASE_STATUS_CANCELLED
        purchase.cancelled_by = actor.user_id
        purchase.cancelled_at = utcnow()
        db.session.flush()

        current_app.logger.info("Purchase %s cancelled by %s", purchase.id, actor.user_id)
        return purchase

    return run_in_transaction(_op)


def get_purchase(purchase_id: str) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if not purchase:
        raise NotFoundError(f"Purchase {purchase_id} not found")
    return purchase


def list_purchases_by_branch(
    branch_id: str | None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    supplier_id: str | None = None,
    status: str | None = None,
) -> list[Purchase]:
    query = db.session.query(Purchase)
    if branch_id is not None:
        query = query.filter(Purchase.branch_id == branch_id)
    if start is not None:
        query = query.filter(Purchase.created_at >= start)
    if end is not None:
        query = query.filter(Purchase.created_at < end)
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    if status is not None:
        query = query.filter(Purchase.status == status)
    return query.order_by(Purchase.created_at.desc()).all()
