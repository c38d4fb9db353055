# Overview: Customer lookup and the running debt balance behind CXC accounts.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Customer, Supplier
from erp.errors import NotFoundError
from erp.time_utils import utcnow


def get_customer(customer_id: str) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def get_supplier(supplier_id: str) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def adjust_debt(customer_id: str, delta: int) -> Customer:
    """
    Move a customer's current_debt by delta (no commit).

    Positive when a CXC is opened, negative when it is paid or reversed.
    Single arithmetic UPDATE, so concurrent adjustments do not overwrite each
    other.
    """
    stmt = (
        update(Customer)
        .where(Customer.id == customer_id)
        .values(current_debt=Customer.current_debt + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        raise NotFoundError(f"Customer {customer_id} not found")
    return db.session.get(Customer, customer_id, populate_existing=True)


def available_credit(customer_id: str) -> int:
    return get_customer(customer_id).available_credit
