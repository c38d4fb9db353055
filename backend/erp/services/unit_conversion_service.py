# Overview: Conversions between a product's sale/purchase units and its base unit.

from __future__ import annotations

from ..extensions import db
from ..models import UnitConversion
from erp.errors import NotFoundError, ValidationError


# Base quantities are rounded to avoid float noise such as 0.1 * 3
QUANTITY_PRECISION = 6


def _load_unit(unit_id: str, product_id: str, *, require_active: bool = True) -> UnitConversion:
    unit = db.session.get(UnitConversion, unit_id)
    if not unit:
        raise NotFoundError(f"Unit conversion {unit_id} not found")
    if unit.product_id != product_id:
        raise ValidationError(f"Unit {unit.unit_name} does not belong to product {product_id}")
    if require_active and not unit.is_active:
        raise ValidationError(f"Unit {unit.unit_name} is inactive")
    return unit


def convert_to_base(quantity: float, unit_id: str, product_id: str) -> float:
    """Base quantity = quantity x conversion factor."""
    unit = _load_unit(unit_id, product_id)
    return round(quantity * unit.conversion_factor, QUANTITY_PRECISION)


def convert_from_base(base_quantity: float, unit_id: str, product_id: str) -> float:
    unit = _load_unit(unit_id, product_id)
    return round(base_quantity / unit.conversion_factor, QUANTITY_PRECISION)


def resolve_base_quantity(product_id: str, quantity: float, unit_id: str | None = None) -> tuple[float, UnitConversion | None]:
    """
    Base quantity for a line item plus the unit used, if any.

    Without a unit the quantity is already in the base unit and passes
    through unchanged.
    """
    if not unit_id:
        return quantity, None
    unit = _load_unit(unit_id, product_id)
    return round(quantity * unit.conversion_factor, QUANTITY_PRECISION), unit


def calculate_unit_price(base_price: int, unit_id: str, product_id: str, price_type: str = "retail") -> int:
    """
    Price of one converted unit in minor units.

    A price stored on the unit wins; otherwise base price x factor.
    """
    unit = _load_unit(unit_id, product_id, require_active=False)
    if price_type == "retail" and unit.retail_price:
        return unit.retail_price
    if price_type == "wholesale" and unit.wholesale_price:
        return unit.wholesale_price
    return int(round(base_price * unit.conversion_factor))


def get_product_units(product_id: str) -> list[UnitConversion]:
    return (
        db.session.query(UnitConversion)
        .filter_by(product_id=product_id, is_active=True)
        .order_by(UnitConversion.conversion_factor.asc())
        .all()
    )
