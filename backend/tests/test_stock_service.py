# Overview: Pytest coverage for the per-branch stock ledger.

import pytest

from erp.errors import InsufficientStockError, NotFoundError, ValidationError
from erp.models import StockAdjustment
from erp.services import stock_service

from conftest import quantity_of


class TestIncomingStock:

    def test_add_stock_creates_row_with_default_thresholds(self, db_session, product, branch_a):
        stock = stock_service.add_stock(product.id, branch_a.id, 5)
        db_session.commit()

        assert stock.quantity == 5
        assert stock.min_stock == 10
        assert stock.max_stock == 1000

    def test_add_stock_increments_existing_row(self, db_session, product, branch_a, set_stock):
        set_stock(product, branch_a, 7)

        stock_service.add_stock(product.id, branch_a.id, 3)
        db_session.commit()

        assert quantity_of(product, branch_a) == 10

    def test_increment_unknown_stock(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.increment("STOCK-missing", 1)


class TestOutgoingStock:

    def test_decrement_to_exactly_zero(self, db_session, product, branch_a, set_stock):
        stock = set_stock(product, branch_a, 4)

        stock_service.decrement(stock.id, 4)
        db_session.commit()

        assert quantity_of(product, branch_a) == 0

    def test_decrement_rejects_insufficient_quantity(self, db_session, product, branch_a, set_stock):
        stock = set_stock(product, branch_a, 3)

        with pytest.raises(InsufficientStockError) as exc:
            stock_service.decrement(stock.id, 5, product_label="Cemento")
        db_session.rollback()

        assert "Cemento" in exc.value.message
        assert "Available: 3, required: 5" in exc.value.message
        assert quantity_of(product, branch_a) == 3

    def test_remove_stock_without_row_counts_as_zero(self, db_session, product, branch_a):
        with pytest.raises(InsufficientStockError) as exc:
            stock_service.remove_stock(product.id, branch_a.id, 1)

        assert exc.value.details["items"][0]["available"] == 0

    def test_require_available_aggregates_per_product(self, db_session, product, other_product, branch_a, set_stock):
        set_stock(product, branch_a, 10)
        set_stock(other_product, branch_a, 1)

        stock_service.require_available({product.id: 10}, branch_a.id)

        with pytest.raises(InsufficientStockError) as exc:
            stock_service.require_available({product.id: 6, other_product.id: 2}, branch_a.id)

        items = exc.value.details["items"]
        assert [item["product_id"] for item in items] == [other_product.id]
        assert "Varilla" in exc.value.message

    def test_has_enough_stock(self, db_session, product, branch_a, branch_b, set_stock):
        set_stock(product, branch_a, 2)

        assert stock_service.has_enough_stock(product.id, branch_a.id, 2)
        assert not stock_service.has_enough_stock(product.id, branch_a.id, 2.5)
        assert not stock_service.has_enough_stock(product.id, branch_b.id, 1)


class TestAdjustments:

    def test_adjust_stock_records_audit_row(self, db_session, product, branch_a, manager_a, set_stock):
        stock = set_stock(product, branch_a, 20)

        stock_service.adjust_stock(stock.id, 17, "Merma por humedad", manager_a)

        assert quantity_of(product, branch_a) == 17
        adjustments = db_session.query(StockAdjustment).filter_by(stock_id=stock.id).all()
        assert len(adjustments) == 1
        assert adjustments[0].previous_quantity == 20
        assert adjustments[0].new_quantity == 17
        assert adjustments[0].reason == "Merma por humedad"
        assert adjustments[0].created_by == manager_a.user_id

    def test_adjust_stock_rejects_negative_quantity(self, db_session, product, branch_a, manager_a, set_stock):
        stock = set_stock(product, branch_a, 20)

        with pytest.raises(ValidationError):
            stock_service.adjust_stock(stock.id, -1, "Conteo", manager_a)

        assert quantity_of(product, branch_a) == 20
        assert db_session.query(StockAdjustment).count() == 0

    def test_adjust_stock_requires_reason(self, db_session, product, branch_a, manager_a, set_stock):
        stock = set_stock(product, branch_a, 20)

        with pytest.raises(ValidationError):
            stock_service.adjust_stock(stock.id, 5, "   ", manager_a)

        assert quantity_of(product, branch_a) == 20


class TestStockQueries:

    def test_low_stock_alerts_report_deficit(self, db_session, product, other_product, branch_a, set_stock):
        set_stock(product, branch_a, 4)
        set_stock(other_product, branch_a, 50)

        alerts = stock_service.low_stock_alerts(branch_a.id)

        assert len(alerts) == 1
        assert alerts[0]["product"]["id"] == product.id
        assert alerts[0]["deficit"] == 6

    def test_inventory_value_and_units(self, db_session, product, other_product, branch_a, set_stock):
        set_stock(product, branch_a, 3)
        set_stock(other_product, branch_a, 2)

        assert stock_service.total_units(branch_a.id) == 5
        assert stock_service.inventory_value(branch_a.id) == 3 * 500 + 2 * 200

    def test_list_by_branch_includes_product(self, db_session, product, branch_a, branch_b, set_stock):
        set_stock(product, branch_a, 3)
        set_stock(product, branch_b, 8)

        rows = stock_service.list_by_branch(branch_b.id)

        assert len(rows) == 1
        assert rows[0]["quantity"] == 8
        assert rows[0]["product"]["sku"] == "CEM-001"
        assert len(stock_service.list_by_product(product.id)) == 2
