# Overview: Sale workflow composing the stock, credit, debt and cash ledgers.

"""
Sales Service

WHY: A sale touches up to four ledgers at once (stock, CXC account, customer
debt, cash journal). Running it as one transaction with every check ahead of
the first write means a sale is either fully recorded or not at all.

LIFECYCLE:
1. ACTIVE: Created with its items; stock decremented, money recorded
2. CANCELLED: Same business day only; every ledger effect reversed
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Branch, Product, Sale, SaleItem
from ..models.cash import MOVEMENT_INCOME, CATEGORY_SALE, PAYMENT_CASH, VALID_PAYMENT_METHODS
from ..models.credit import ACCOUNT_TYPE_CXC
from ..models.sales import SALE_TYPE_CASH, SALE_TYPE_CREDIT, SALE_STATUS_CANCELLED
from erp.errors import (
    AccountHasPaymentsError,
    CreditCustomerRequiredError,
    CreditLimitExceededError,
    NotFoundError,
    SaleAlreadyCancelledError,
    SaleNotFoundError,
    SaleNotFromTodayError,
    ValidationError,
)
from erp.time_utils import due_date_after, is_business_today, utcnow
from erp.validation import require_amount_in_range, require_quantity
from . import cash_service, credit_service, customer_service, stock_service
from .access_service import Actor
from .concurrency import locked_get, run_in_transaction
from .unit_conversion_service import resolve_base_quantity


def _load_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    if not product.is_active:
        raise ValidationError(f"Product {product.name} is inactive")
    return product


def _prepare_lines(items: list[dict]) -> list[dict]:
    """Resolve product, unit and base quantity for every line (no writes)."""
    lines = []
    for index, item in enumerate(items):
        quantity = require_quantity(item["quantity"], f"items[{index}].quantity")
        product = _load_product(item["product_id"])
        base_quantity, unit = resolve_base_quantity(
            product.id, quantity, item.get("unit_conversion_id"),
        )
        require_quantity(base_quantity, f"items[{index}].base_quantity")
        lines.append({
            "product": product,
            "unit": unit,
            "quantity": quantity,
            "unit_price": item["unit_price"],
            "subtotal": require_amount_in_range(
                int(round(quantity * item["unit_price"])), f"items[{index}].subtotal",
            ),
            "base_quantity": base_quantity,
        })
    return lines


def create_sale(
    *,
    branch_id: str,
    items: list[dict],
    actor: Actor,
    type: str = SALE_TYPE_CASH,
    customer_id: str | None = None,
    payment_method: str | None = None,
    tax: int = 0,
    discount: int = 0,
    notes: str | None = None,
) -> Sale:
    """
    Record a sale and apply its ledger effects.

    Args:
        items: dicts with product_id, quantity, unit_price and an optional
            unit_conversion_id (quantity is then in that unit)

    Raises:
        InsufficientStockError: a product's total base quantity exceeds stock
        CreditCustomerRequiredError: CREDIT sale without customer
        CreditLimitExceededError: total exceeds the customer's available credit
    """
    def _op():
        if type not in (SALE_TYPE_CASH, SALE_TYPE_CREDIT):
            raise ValidationError(f"Invalid sale type: {type}")
        if not items:
            raise ValidationError("A sale needs at least one item")
        if payment_method is not None and payment_method not in VALID_PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method: {payment_method}. Must be one of {VALID_PAYMENT_METHODS}")
        if not db.session.get(Branch, branch_id):
            raise NotFoundError(f"Branch {branch_id} not found")

        lines = _prepare_lines(items)

        required: dict[str, float] = {}
        for line in lines:
            product_id = line["product"].id
            required[product_id] = required.get(product_id, 0) + line["base_quantity"]
        stock_service.require_available(required, branch_id)

        subtotal = require_amount_in_range(sum(line["subtotal"] for line in lines), "subtotal")
        total = require_amount_in_range(subtotal + tax - discount, "total")
        if total < 0:
            raise ValidationError("Discount cannot exceed subtotal plus tax")

        customer = None
        if type == SALE_TYPE_CREDIT:
            if not customer_id:
                raise CreditCustomerRequiredError("A customer is required for credit sales")
            customer = customer_service.get_customer(customer_id)
            if total > customer.available_credit:
                raise CreditLimitExceededError(
                    f"Credit limit exceeded. Available: {customer.available_credit}, required: {total}",
                    details={
                        "customer_id": customer.id,
                        "credit_limit": customer.credit_limit,
                        "current_debt": customer.current_debt,
                        "available": customer.available_credit,
                        "required": total,
                    },
                )
        elif customer_id:
            customer = customer_service.get_customer(customer_id)

        sale = Sale(
            branch_id=branch_id,
            customer_id=customer.id if customer else None,
            type=type,
            payment_method=payment_method or (PAYMENT_CASH if type == SALE_TYPE_CASH else None),
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            total=total,
            notes=notes,
            created_by=actor.user_id,
        )
        db.session.add(sale)
        for line in lines:
            unit = line["unit"]
            sale.items.append(SaleItem(
                product_id=line["product"].id,
                product_name=line["product"].name,
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                subtotal=line["subtotal"],
                unit_conversion_id=unit.id if unit else None,
                unit_name=unit.unit_name if unit else None,
                conversion_factor=unit.conversion_factor if unit else None,
                base_quantity=line["base_quantity"],
            ))
        db.session.flush()

        for line in lines:
            stock_service.remove_stock(
                line["product"].id, branch_id, line["base_quantity"],
                product_label=line["product"].name,
            )

        if type == SALE_TYPE_CREDIT:
            credit_service.open_account(
                type=ACCOUNT_TYPE_CXC,
                branch_id=branch_id,
                customer_id=customer.id,
                sale_id=sale.id,
                total_amount=total,
                due_date=due_date_after(customer.credit_days or current_app.config["DEFAULT_CREDIT_DAYS"]),
            )
            customer_service.adjust_debt(customer.id, total)
        elif total > 0:
            cash_service.record_movement(
                branch_id=branch_id,
                type=MOVEMENT_INCOME,
                category=CATEGORY_SALE,
                amount=total,
                sale_id=sale.id,
                payment_method=sale.payment_method,
                description=f"Sale {sale.id}",
                created_by=actor.user_id,
            )

        current_app.logger.info(
            "Sale %s created at %s by %s: %s %s, %d item(s)",
            sale.id, branch_id, actor.user_id, type, total, len(lines),
        )
        return sale

    return run_in_transaction(_op)


def cancel_sale(sale_id: str, actor: Actor) -> Sale:
    """
    Cancel a sale made today and reverse its ledger effects.

    Raises:
        SaleNotFoundError, SaleAlreadyCancelledError, SaleNotFromTodayError
        AccountHasPaymentsError: the CXC of a credit sale has payments
    """
    def _op():
        sale = locked_get(Sale, sale_id)
        if not sale:
            raise SaleNotFoundError(f"Sale {sale_id} not found")
        if sale.status == SALE_STATUS_CANCELLED:
            raise SaleAlreadyCancelledError("This sale is already cancelled")
        if not is_business_today(sale.created_at):
            raise SaleNotFromTodayError("Only sales from today can be cancelled")

        account = None
        if sale.type == SALE_TYPE_CREDIT:
            account = credit_service.find_by_sale(sale.id)
            if account is not None and account.paid_amount > 0:
                raise AccountHasPaymentsError(
                    f"Cannot cancel a credit sale with payments. Paid amount: {account.paid_amount}",
                    details={"credit_account_id": account.id, "paid_amount": account.paid_amount},
                )

        for item in sale.items:
            stock_service.add_stock(item.product_id, sale.branch_id, item.base_quantity)

        if sale.type == SALE_TYPE_CASH:
            if sale.total > 0:
                cash_service.record_reversal(
                    MOVEMENT_INCOME,
                    branch_id=sale.branch_id,
                    amount=sale.total,
                    sale_id=sale.id,
                    payment_method=sale.payment_method,
                    description=f"Cancellation of sale {sale.id}",
                    created_by=actor.user_id,
                )
        elif account is not None:
            credit_service.remove_unpaid_account(account)

        sale.status = SALE_STATUS_CANCELLED
        sale.cancelled_by = actor.user_id
        sale.cancelled_at = utcnow()
        db.session.flush()

        current_app.logger.info("Sale %s cancelled by %s", sale.id, actor.user_id)
        return sale

    return run_in_transaction(_op)


def get_sale(sale_id: str) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise SaleNotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales_by_branch(
    branch_id: str | None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    customer_id: str | None = None,
    status: str | None = None,
) -> list[Sale]:
    query = db.session.query(Sale)
    if branch_id is not None:
        query = query.filter(Sale.branch_id == branch_id)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at < end)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if status is not None:
        query = query.filter(Sale.status == status)
    return query.order_by(Sale.created_at.desc()).all()
