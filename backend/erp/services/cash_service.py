# Overview: Service-layer operations for the branch cash journal.

"""
Cash Ledger

WHY: Every event that moves money in or out of a branch's cash (sales,
purchases, credit payments, manual expenses, cancellations) appends exactly
one CashMovement. The journal is append-only: a cancellation appends a
compensating movement of the opposite type under ADJUSTMENT instead of
editing or deleting the original row.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import case, func

from ..extensions import db
from ..models import CashMovement
from ..models.cash import (
    MOVEMENT_INCOME,
    MOVEMENT_EXPENSE,
    CATEGORY_ADJUSTMENT,
    PAYMENT_CASH,
    VALID_MOVEMENT_TYPES,
    VALID_CATEGORIES,
    VALID_PAYMENT_METHODS,
)
from erp.errors import ValidationError
from erp.time_utils import business_day_bounds, business_today
from .access_service import Actor
from .concurrency import run_in_transaction


def record_movement(
    *,
    branch_id: str,
    type: str,
    category: str,
    amount: int,
    description: str,
    created_by: str,
    payment_method: str | None = None,
    sale_id: str | None = None,
    purchase_id: str | None = None,
    credit_account_id: str | None = None,
    reference: str | None = None,
    notes: str | None = None,
) -> CashMovement:
    """
    Append one movement to the journal (no commit).

    Called by the sale, purchase and credit workflows inside their own
    transaction.
    """
    if type not in VALID_MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {type}. Must be one of {VALID_MOVEMENT_TYPES}")
    if category not in VALID_CATEGORIES:
        raise ValidationError(f"Invalid movement category: {category}. Must be one of {VALID_CATEGORIES}")
    method = payment_method or PAYMENT_CASH
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Amount must be a positive integer")
    if not description or not description.strip():
        raise ValidationError("Description is required")

    movement = CashMovement(
        branch_id=branch_id,
        type=type,
        category=category,
        amount=amount,
        sale_id=sale_id,
        purchase_id=purchase_id,
        credit_account_id=credit_account_id,
        payment_method=method,
        reference=reference,
        description=description.strip(),
        notes=notes,
        created_by=created_by,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def record_reversal(original_type: str, **kwargs) -> CashMovement:
    """Compensating movement: opposite type, ADJUSTMENT category."""
    reversed_type = MOVEMENT_EXPENSE if original_type == MOVEMENT_INCOME else MOVEMENT_INCOME
    return record_movement(type=reversed_type, category=CATEGORY_ADJUSTMENT, **kwargs)


def register_manual_movement(
    *,
    branch_id: str,
    type: str,
    category: str,
    amount: int,
    description: str,
    actor: Actor,
    payment_method: str | None = None,
    reference: str | None = None,
    notes: str | None = None,
) -> CashMovement:
    """Operating expenses, cash adjustments and other movements entered by hand."""
    def _op():
        return record_movement(
            branch_id=branch_id,
            type=type,
            category=category,
            amount=amount,
            description=description,
            created_by=actor.user_id,
            payment_method=payment_method,
            reference=reference,
            notes=notes,
        )

    return run_in_transaction(_op)


def _filtered(query, branch_id: str | None, start: datetime | None, end: datetime | None):
    if branch_id is not None:
        query = query.filter(CashMovement.branch_id == branch_id)
    if start is not None:
        query = query.filter(CashMovement.created_at >= start)
    if end is not None:
        query = query.filter(CashMovement.created_at < end)
    return query


def find_by_branch(
    branch_id: str | None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[CashMovement]:
    """Movements in [start, end), oldest first. branch_id=None means every branch."""
    query = _filtered(db.session.query(CashMovement), branch_id, start, end)
    return query.order_by(CashMovement.created_at.asc(), CashMovement.id.asc()).all()


def get_totals(
    branch_id: str | None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> tuple[int, int]:
    """(income, expenses) over [start, end)."""
    query = db.session.query(
        func.coalesce(func.sum(case((CashMovement.type == MOVEMENT_INCOME, CashMovement.amount), else_=0)), 0),
        func.coalesce(func.sum(case((CashMovement.type == MOVEMENT_EXPENSE, CashMovement.amount), else_=0)), 0),
    )
    income, expenses = _filtered(query, branch_id, start, end).one()
    return int(income or 0), int(expenses or 0)


def get_balance(
    branch_id: str | None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> int:
    """SUM(INCOME) - SUM(EXPENSE) over [start, end)."""
    income, expenses = get_totals(branch_id, start, end)
    return income - expenses


def get_daily_balance(branch_id: str | None, day: date | None = None) -> dict:
    """Income, expenses and net for one business-calendar day."""
    day = day or business_today()
    start, end = business_day_bounds(day)
    movements = find_by_branch(branch_id, start, end)
    income = sum(m.amount for m in movements if m.type == MOVEMENT_INCOME)
    expenses = sum(m.amount for m in movements if m.type == MOVEMENT_EXPENSE)
    return {
        "date": day.isoformat(),
        "branch_id": branch_id,
        "income": income,
        "expenses": expenses,
        "net_balance": income - expenses,
        "movements": [m.to_dict() for m in movements],
    }


def get_summary_by_category(
    branch_id: str | None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict[str, dict[str, int]]:
    query = db.session.query(
        CashMovement.category,
        CashMovement.type,
        func.coalesce(func.sum(CashMovement.amount), 0),
    )
    rows = _filtered(query, branch_id, start, end).group_by(CashMovement.category, CashMovement.type).all()

    summary: dict[str, dict[str, int]] = {}
    for category, movement_type, total in rows:
        entry = summary.setdefault(category, {"income": 0, "expense": 0})
        if movement_type == MOVEMENT_INCOME:
            entry["income"] += int(total)
        else:
            entry["expense"] += int(total)
    return summary
