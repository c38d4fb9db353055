# Overview: Service-layer operations for the per-branch stock ledger.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Product, Stock, StockAdjustment
from erp.errors import InsufficientStockError, NotFoundError, ValidationError
from erp.time_utils import utcnow
from .access_service import Actor
from .concurrency import lock_for_update, locked_get, run_in_transaction
"""
Stock Ledger Invariants (authoritative)

- One row per (product_id, branch_id); quantity is in the product's base unit.
- quantity >= 0 at all times. Outgoing movements go through decrement(),
  a single conditional UPDATE; zero rows affected means InsufficientStock.
- Incoming movements go through add_stock(), which increments the row or
  lazily creates it with the configured min/max thresholds.
- Manual adjustments set an absolute quantity, need a reason, and append a
  StockAdjustment row.
"""


def _fmt(quantity: float) -> str:
    return f"{quantity:g}"


def find_by_product_and_branch(product_id: str, branch_id: str, *, lock: bool = False) -> Stock | None:
    query = db.session.query(Stock).filter_by(product_id=product_id, branch_id=branch_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_available_quantity(product_id: str, branch_id: str) -> float:
    stock = find_by_product_and_branch(product_id, branch_id)
    return stock.quantity if stock else 0


def has_enough_stock(product_id: str, branch_id: str, required_quantity: float) -> bool:
    stock = find_by_product_and_branch(product_id, branch_id)
    if stock is None:
        return False
    return stock.quantity >= required_quantity


def create_stock(
    product_id: str,
    branch_id: str,
    quantity: float = 0,
    min_stock: float | None = None,
    max_stock: float | None = None,
) -> Stock:
    if quantity < 0:
        raise ValidationError("Stock quantity cannot be negative")
    stock = Stock(
        product_id=product_id,
        branch_id=branch_id,
        quantity=quantity,
        min_stock=current_app.config["DEFAULT_MIN_STOCK"] if min_stock is None else min_stock,
        max_stock=current_app.config["DEFAULT_MAX_STOCK"] if max_stock is None else max_stock,
    )
    db.session.add(stock)
    db.session.flush()
    return stock


def increment(stock_id: str, delta: float) -> Stock:
    """Atomically add delta to a stock row."""
    stmt = (
        update(Stock)
        .where(Stock.id == stock_id)
        .values(quantity=Stock.quantity + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        raise NotFoundError(f"Stock {stock_id} not found")
    return db.session.get(Stock, stock_id, populate_existing=True)


def decrement(stock_id: str, delta: float, *, product_label: str | None = None) -> Stock:
    """
    Atomically subtract delta, only if enough quantity is on hand.

    The availability check and the write are one statement:
    UPDATE stock SET quantity = quantity - :delta WHERE id = :id AND quantity >= :delta
    """
    stmt = (
        update(Stock)
        .where(Stock.id == stock_id, Stock.quantity >= delta)
        .values(quantity=Stock.quantity - delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    stock = db.session.get(Stock, stock_id, populate_existing=True)
    if not result.rowcount:
        available = stock.quantity if stock else 0
        label = product_label or (stock.product_id if stock else stock_id)
        raise InsufficientStockError(
            f"Insufficient stock for {label}. Available: {_fmt(available)}, required: {_fmt(delta)}",
            details={"items": [{
                "product_id": stock.product_id if stock else None,
                "available": available,
                "required": delta,
            }]},
        )
    return stock


def set_quantity(stock_id: str, new_quantity: float) -> Stock:
    if new_quantity < 0:
        raise ValidationError("Quantity cannot be negative")
    stock = locked_get(Stock, stock_id)
    if not stock:
        raise NotFoundError(f"Stock {stock_id} not found")
    stock.quantity = new_quantity
    stock.updated_at = utcnow()
    db.session.flush()
    return stock


def add_stock(product_id: str, branch_id: str, quantity: float) -> Stock:
    """Incoming movement: increment the row, or create it holding `quantity`."""
    stock = find_by_product_and_branch(product_id, branch_id)
    if stock is None:
        return create_stock(product_id, branch_id, quantity=quantity)
    return increment(stock.id, quantity)


def remove_stock(product_id: str, branch_id: str, quantity: float, *, product_label: str | None = None) -> Stock:
    """Outgoing movement; a missing row counts as zero on hand."""
    stock = find_by_product_and_branch(product_id, branch_id)
    if stock is None:
        raise InsufficientStockError(
            f"Insufficient stock for {product_label or product_id}. Available: 0, required: {_fmt(quantity)}",
            details={"items": [{"product_id": product_id, "available": 0, "required": quantity}]},
        )
    return decrement(stock.id, quantity, product_label=product_label)


def require_available(
    requirements: dict[str, float],
    branch_id: str,
    *,
    location_label: str | None = None,
) -> None:
    """
    Validate that branch_id holds every required base quantity.

    requirements maps product_id -> total base quantity across all lines, so
    two lines of the same product are checked together.
    """
    insufficient = []
    for product_id, required in requirements.items():
        available = get_available_quantity(product_id, branch_id)
        if available < required:
            insufficient.append({
                "product_id": product_id,
                "available": available,
                "required": required,
            })

    if insufficient:
        first = insufficient[0]
        product = db.session.get(Product, first["product_id"])
        name = product.name if product else first["product_id"]
        where = f" in {location_label}" if location_label else ""
        raise InsufficientStockError(
            f"Insufficient stock{where} for {name}. "
            f"Available: {_fmt(first['available'])}, required: {_fmt(first['required'])}",
            details={"items": insufficient},
        )


def adjust_stock(stock_id: str, new_quantity: float, reason: str, actor: Actor) -> Stock:
    """
    Manual correction (shrinkage, count differences) to an absolute quantity.

    Appends a StockAdjustment row with the previous and new quantity.
    """
    def _op():
        if new_quantity is None or new_quantity < 0:
            raise ValidationError("Quantity cannot be negative")
        if not reason or not reason.strip():
            raise ValidationError("A reason is required for stock adjustments")

        stock = locked_get(Stock, stock_id)
        if not stock:
            raise NotFoundError(f"Stock {stock_id} not found")

        previous_quantity = stock.quantity
        stock.quantity = new_quantity
        stock.updated_at = utcnow()

        db.session.add(StockAdjustment(
            stock_id=stock.id,
            product_id=stock.product_id,
            branch_id=stock.branch_id,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            reason=reason.strip(),
            created_by=actor.user_id,
        ))
        db.session.flush()

        current_app.logger.info(
            "Stock adjustment by %s: product %s at %s from %s to %s. Reason: %s",
            actor.user_id, stock.product_id, stock.branch_id,
            _fmt(previous_quantity), _fmt(new_quantity), reason.strip(),
        )
        return stock

    return run_in_transaction(_op)


def list_adjustments(stock_id: str) -> list[StockAdjustment]:
    return (
        db.session.query(StockAdjustment)
        .filter_by(stock_id=stock_id)
        .order_by(StockAdjustment.created_at.desc())
        .all()
    )


def list_by_branch(branch_id: str) -> list[dict]:
    """Stock rows of a branch joined with their product."""
    rows = (
        db.session.query(Stock, Product)
        .join(Product, Product.id == Stock.product_id)
        .filter(Stock.branch_id == branch_id)
        .order_by(Product.name.asc())
        .all()
    )
    return [{**stock.to_dict(), "product": product.to_dict()} for stock, product in rows]


def list_by_product(product_id: str) -> list[Stock]:
    return db.session.query(Stock).filter_by(product_id=product_id).order_by(Stock.branch_id).all()


def low_stock_alerts(branch_id: str) -> list[dict]:
    rows = (
        db.session.query(Stock, Product)
        .join(Product, Product.id == Stock.product_id)
        .filter(Stock.branch_id == branch_id, Stock.quantity <= Stock.min_stock)
        .order_by(Product.name.asc())
        .all()
    )
    return [
        {
            "stock": stock.to_dict(),
            "product": product.to_dict(),
            "current_quantity": stock.quantity,
            "min_stock": stock.min_stock,
            "deficit": stock.min_stock - stock.quantity,
        }
        for stock, product in rows
    ]


def total_units(branch_id: str) -> float:
    return sum(stock.quantity for stock in db.session.query(Stock).filter_by(branch_id=branch_id))


def inventory_value(branch_id: str) -> int:
    """Value of a branch's stock at cost price, in minor units."""
    rows = (
        db.session.query(Stock.quantity, Product.cost_price)
        .join(Product, Product.id == Stock.product_id)
        .filter(Stock.branch_id == branch_id)
        .all()
    )
    return int(round(sum(quantity * cost_price for quantity, cost_price in rows)))
