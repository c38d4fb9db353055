# Overview: Pytest coverage for the sale workflow and its cancellation.

from datetime import timedelta

import pytest

from erp.errors import (
    AccountHasPaymentsError,
    CreditCustomerRequiredError,
    CreditLimitExceededError,
    InsufficientStockError,
    NotFoundError,
    SaleAlreadyCancelledError,
    SaleNotFromTodayError,
    ValidationError,
)
from erp.models import CashMovement, CreditAccount, Customer, Sale, SaleItem, UnitConversion
from erp.models.cash import MOVEMENT_INCOME, MOVEMENT_EXPENSE, CATEGORY_SALE, CATEGORY_ADJUSTMENT
from erp.models.credit import ACCOUNT_TYPE_CXC, STATUS_PENDING
from erp.services import cash_service, credit_service, sales_service
from erp.time_utils import utcnow

from conftest import quantity_of


def _sell(branch, actor, product, quantity=1, unit_price=1000, **kwargs):
    return sales_service.create_sale(
        branch_id=branch.id,
        items=[{"product_id": product.id, "quantity": quantity, "unit_price": unit_price}],
        actor=actor,
        **kwargs,
    )


class TestCreateCashSale:

    def test_cash_sale_scenario(self, db_session, branch_a, cashier_a, product, set_stock):
        """Cash sale of 1000 moves the branch balance 0 -> 1000 -> 0 on same-day cancel."""
        set_stock(product, branch_a, 10)
        assert cash_service.get_balance(branch_a.id) == 0

        sale = _sell(branch_a, cashier_a, product)
        assert cash_service.get_balance(branch_a.id) == 1000
        assert quantity_of(product, branch_a) == 9

        sales_service.cancel_sale(sale.id, cashier_a)
        assert cash_service.get_balance(branch_a.id) == 0
        assert quantity_of(product, branch_a) == 10

    def test_cash_sale_records_income_movement(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 10)

        sale = _sell(branch_a, cashier_a, product, quantity=2, payment_method="TRANSFER")

        movement = db_session.query(CashMovement).filter_by(sale_id=sale.id).one()
        assert movement.type == MOVEMENT_INCOME
        assert movement.category == CATEGORY_SALE
        assert movement.amount == 2000
        assert movement.payment_method == "TRANSFER"

    def test_totals_are_recomputed_from_items(self, db_session, branch_a, cashier_a, product, other_product, set_stock):
        set_stock(product, branch_a, 10)
        set_stock(other_product, branch_a, 10)

        sale = sales_service.create_sale(
            branch_id=branch_a.id,
            items=[
                {"product_id": product.id, "quantity": 1.5, "unit_price": 1000},
                {"product_id": other_product.id, "quantity": 3, "unit_price": 350},
            ],
            tax=150,
            discount=100,
            actor=cashier_a,
        )

        assert sorted(item.subtotal for item in sale.items) == [1050, 1500]
        assert sale.subtotal == 2550
        assert sale.total == 2600
        assert {item.product_id: item.product_name for item in sale.items}[product.id] == "Cemento"

    def test_insufficient_stock_names_product_and_writes_nothing(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 2)

        with pytest.raises(InsufficientStockError) as exc:
            _sell(branch_a, cashier_a, product, quantity=3)

        assert "Cemento" in exc.value.message
        assert db_session.query(Sale).count() == 0
        assert db_session.query(CashMovement).count() == 0
        assert quantity_of(product, branch_a) == 2

    def test_stock_check_aggregates_lines_of_same_product(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 5)

        with pytest.raises(InsufficientStockError):
            sales_service.create_sale(
                branch_id=branch_a.id,
                items=[
                    {"product_id": product.id, "quantity": 3, "unit_price": 1000},
                    {"product_id": product.id, "quantity": 3, "unit_price": 1000},
                ],
                actor=cashier_a,
            )

        assert quantity_of(product, branch_a) == 5
        assert db_session.query(Sale).count() == 0

    def test_unknown_product(self, db_session, branch_a, cashier_a):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(
                branch_id=branch_a.id,
                items=[{"product_id": "PROD-missing", "quantity": 1, "unit_price": 10}],
                actor=cashier_a,
            )

    def test_discount_cannot_make_total_negative(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 5)

        with pytest.raises(ValidationError):
            _sell(branch_a, cashier_a, product, discount=5000)

    def test_invalid_payment_method_is_rejected_before_writing(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 10)

        with pytest.raises(ValidationError):
            _sell(branch_a, cashier_a, product, payment_method="BITCOIN")

        assert db_session.query(Sale).count() == 0
        assert quantity_of(product, branch_a) == 10

    @pytest.mark.parametrize("quantity", [float("inf"), float("nan"), 1e300, 0, -2])
    def test_unusable_quantity_is_rejected(self, db_session, branch_a, cashier_a, product, set_stock, quantity):
        set_stock(product, branch_a, 10)

        with pytest.raises(ValidationError):
            _sell(branch_a, cashier_a, product, quantity=quantity)

        assert db_session.query(Sale).count() == 0
        assert quantity_of(product, branch_a) == 10

    def test_total_above_maximum_amount_is_rejected(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 1_000_000)

        with pytest.raises(ValidationError):
            _sell(branch_a, cashier_a, product, quantity=1_000_000, unit_price=999_999_999)

        assert quantity_of(product, branch_a) == 1_000_000


class TestSaleRollback:
    """A failure after the sale header, items and stock were written leaves nothing behind."""

    def test_cash_sale_failing_at_cash_movement_rolls_back(
        self, db_session, branch_a, cashier_a, product, set_stock, monkeypatch
    ):
        set_stock(product, branch_a, 10)

        def failing_record_movement(**kwargs):
            assert db_session.query(Sale).count() == 1
            raise RuntimeError("cash journal unavailable")

        monkeypatch.setattr(cash_service, "record_movement", failing_record_movement)

        with pytest.raises(RuntimeError):
            _sell(branch_a, cashier_a, product, quantity=4)

        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(CashMovement).count() == 0
        assert quantity_of(product, branch_a) == 10

    def test_credit_sale_failing_at_debt_update_rolls_back(
        self, db_session, branch_a, cashier_a, customer, product, set_stock, monkeypatch
    ):
        from erp.services import customer_service

        set_stock(product, branch_a, 10)

        def failing_adjust_debt(customer_id, delta):
            assert db_session.query(CreditAccount).count() == 1
            raise RuntimeError("debt update failed")

        monkeypatch.setattr(customer_service, "adjust_debt", failing_adjust_debt)

        with pytest.raises(RuntimeError):
            _sell(branch_a, cashier_a, product, quantity=3, type="CREDIT", customer_id=customer.id)

        assert db_session.query(Sale).count() == 0
        assert db_session.query(CreditAccount).count() == 0
        assert db_session.get(Customer, customer.id).current_debt == 0
        assert quantity_of(product, branch_a) == 10


class TestUnitConversionSale:

    def test_sale_in_converted_unit_decrements_base_quantity(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 100)
        unit = UnitConversion(product_id=product.id, unit_name="Paquete", unit_symbol="paq", conversion_factor=12)
        db_session.add(unit)
        db_session.commit()

        sale = sales_service.create_sale(
            branch_id=branch_a.id,
            items=[{"product_id": product.id, "quantity": 2, "unit_price": 11000, "unit_conversion_id": unit.id}],
            actor=cashier_a,
        )

        item = sale.items[0]
        assert item.base_quantity == 24
        assert item.unit_name == "Paquete"
        assert item.conversion_factor == 12
        assert quantity_of(product, branch_a) == 76

    def test_inactive_unit_is_rejected(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 100)
        unit = UnitConversion(
            product_id=product.id, unit_name="Caja", unit_symbol="cj", conversion_factor=6, is_active=False,
        )
        db_session.add(unit)
        db_session.commit()

        with pytest.raises(ValidationError):
            sales_service.create_sale(
                branch_id=branch_a.id,
                items=[{"product_id": product.id, "quantity": 1, "unit_price": 5000, "unit_conversion_id": unit.id}],
                actor=cashier_a,
            )
        assert quantity_of(product, branch_a) == 100


class TestCreateCreditSale:

    def test_credit_limit_scenario(self, db_session, branch_a, cashier_a, customer, product, set_stock):
        """Limit 5000: a 6000 sale is rejected, a 4000 sale raises debt to 4000."""
        set_stock(product, branch_a, 100)

        with pytest.raises(CreditLimitExceededError):
            _sell(branch_a, cashier_a, product, quantity=6, type="CREDIT", customer_id=customer.id)
        assert db_session.get(Customer, customer.id).current_debt == 0
        assert quantity_of(product, branch_a) == 100

        sale = _sell(branch_a, cashier_a, product, quantity=4, type="CREDIT", customer_id=customer.id)

        assert db_session.get(Customer, customer.id).current_debt == 4000
        account = credit_service.find_by_sale(sale.id)
        assert account.type == ACCOUNT_TYPE_CXC
        assert account.total_amount == 4000
        assert account.status == STATUS_PENDING
        assert (account.due_date - utcnow()).days in (29, 30)
        assert db_session.query(CashMovement).count() == 0

    def test_credit_sale_requires_customer(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 10)

        with pytest.raises(CreditCustomerRequiredError):
            _sell(branch_a, cashier_a, product, type="CREDIT")

    def test_credit_sale_unknown_customer(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 10)

        with pytest.raises(NotFoundError):
            _sell(branch_a, cashier_a, product, type="CREDIT", customer_id="CUST-missing")


class TestCancelSale:

    def test_cancel_credit_sale_removes_account_and_debt(self, db_session, branch_a, cashier_a, customer, product, set_stock):
        set_stock(product, branch_a, 10)
        sale = _sell(branch_a, cashier_a, product, quantity=3, type="CREDIT", customer_id=customer.id)
        sale_id = sale.id

        cancelled = sales_service.cancel_sale(sale_id, cashier_a)

        assert cancelled.status == "CANCELLED"
        assert cancelled.cancelled_by == cashier_a.user_id
        assert credit_service.find_by_sale(sale_id) is None
        assert db_session.query(CreditAccount).count() == 0
        assert db_session.get(Customer, customer.id).current_debt == 0
        assert quantity_of(product, branch_a) == 10

    def test_cancel_credit_sale_with_payment_is_rejected(self, db_session, branch_a, cashier_a, customer, product, set_stock):
        set_stock(product, branch_a, 10)
        sale = _sell(branch_a, cashier_a, product, quantity=3, type="CREDIT", customer_id=customer.id)
        account = credit_service.find_by_sale(sale.id)
        credit_service.register_payment(account.id, amount=500, actor=cashier_a)

        with pytest.raises(AccountHasPaymentsError):
            sales_service.cancel_sale(sale.id, cashier_a)

        assert sales_service.get_sale(sale.id).status == "ACTIVE"
        assert quantity_of(product, branch_a) == 7
        assert db_session.get(Customer, customer.id).current_debt == 2500

    def test_cancel_cash_sale_appends_adjustment(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 10)
        sale = _sell(branch_a, cashier_a, product, quantity=2)

        sales_service.cancel_sale(sale.id, cashier_a)

        movements = db_session.query(CashMovement).filter_by(sale_id=sale.id).all()
        assert {(m.type, m.category, m.amount) for m in movements} == {
            (MOVEMENT_INCOME, CATEGORY_SALE, 2000),
            (MOVEMENT_EXPENSE, CATEGORY_ADJUSTMENT, 2000),
        }

    def test_cancel_twice_is_rejected(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 10)
        sale = _sell(branch_a, cashier_a, product)
        sales_service.cancel_sale(sale.id, cashier_a)

        with pytest.raises(SaleAlreadyCancelledError):
            sales_service.cancel_sale(sale.id, cashier_a)

        assert quantity_of(product, branch_a) == 10
        assert cash_service.get_balance(branch_a.id) == 0

    def test_cancel_sale_from_previous_day_is_rejected(self, db_session, branch_a, cashier_a, product, set_stock):
        set_stock(product, branch_a, 10)
        sale = _sell(branch_a, cashier_a, product)
        sale.created_at = utcnow() - timedelta(days=2)
        db_session.commit()

        with pytest.raises(SaleNotFromTodayError):
            sales_service.cancel_sale(sale.id, cashier_a)

        assert quantity_of(product, branch_a) == 9

    def test_cancel_unknown_sale(self, db_session, cashier_a):
        with pytest.raises(NotFoundError):
            sales_service.cancel_sale("SALE-missing", cashier_a)


class TestSaleQueries:

    def test_list_sales_by_branch_and_customer(self, db_session, branch_a, branch_b, admin, customer, product, set_stock):
        set_stock(product, branch_a, 10)
        set_stock(product, branch_b, 10)
        first = _sell(branch_a, admin, product)
        credit = _sell(branch_a, admin, product, type="CREDIT", customer_id=customer.id)
        _sell(branch_b, admin, product)

        assert {s.id for s in sales_service.list_sales_by_branch(branch_a.id)} == {first.id, credit.id}
        assert [s.id for s in sales_service.list_sales_by_branch(None, customer_id=customer.id)] == [credit.id]
        assert len(sales_service.list_sales_by_branch(None)) == 3
