# Overview: Pytest coverage for product unit conversions.

import pytest

from erp.errors import NotFoundError, ValidationError
from erp.models import UnitConversion
from erp.services import unit_conversion_service


@pytest.fixture
def quintal(db_session, product):
    unit = UnitConversion(
        product_id=product.id,
        unit_name="Quintal",
        unit_symbol="qq",
        conversion_factor=100,
        retail_price=95000,
    )
    db_session.add(unit)
    db_session.commit()
    return unit


def test_resolve_without_unit_passes_through(db_session, product):
    assert unit_conversion_service.resolve_base_quantity(product.id, 2.5) == (2.5, None)


def test_resolve_with_unit(db_session, product, quintal):
    base_quantity, unit = unit_conversion_service.resolve_base_quantity(product.id, 0.5, quintal.id)

    assert base_quantity == 50
    assert unit.id == quintal.id


def test_convert_round_trip_is_rounded(db_session, product, quintal):
    assert unit_conversion_service.convert_to_base(0.3, quintal.id, product.id) == 30
    assert unit_conversion_service.convert_from_base(33, quintal.id, product.id) == 0.33


def test_unit_of_another_product_is_rejected(db_session, product, other_product, quintal):
    with pytest.raises(ValidationError):
        unit_conversion_service.resolve_base_quantity(other_product.id, 1, quintal.id)


def test_unknown_unit(db_session, product):
    with pytest.raises(NotFoundError):
        unit_conversion_service.convert_to_base(1, "UNIT-missing", product.id)


def test_unit_price_prefers_stored_price(db_session, product, quintal):
    assert unit_conversion_service.calculate_unit_price(1000, quintal.id, product.id, "retail") == 95000
    assert unit_conversion_service.calculate_unit_price(800, quintal.id, product.id, "wholesale") == 80000


def test_product_units_lists_active_only(db_session, product, quintal):
    db_session.add(UnitConversion(
        product_id=product.id, unit_name="Saco", unit_symbol="sc", conversion_factor=50, is_active=False,
    ))
    db_session.commit()

    assert [u.unit_name for u in unit_conversion_service.get_product_units(product.id)] == ["Quintal"]
