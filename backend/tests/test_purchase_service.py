# Overview: Pytest coverage for the purchase workflow.

import re
from datetime import timedelta

import pytest

from erp.errors import (
    AccountHasPaymentsError,
    InsufficientStockError,
    NotFoundError,
    PurchaseAlreadyCancelledError,
    PurchaseTooOldToEditError,
    ValidationError,
)
from erp.models import CashMovement, CreditAccount, Purchase
from erp.models.cash import MOVEMENT_INCOME, MOVEMENT_EXPENSE, CATEGORY_PURCHASE, CATEGORY_ADJUSTMENT
from erp.models.credit import ACCOUNT_TYPE_CPP
from erp.services import cash_service, credit_service, purchase_service
from erp.time_utils import utcnow

from conftest import quantity_of


def _buy(branch, actor, supplier, product, quantity=10, unit_cost=500, **kwargs):
    return purchase_service.create_purchase(
        branch_id=branch.id,
        supplier_id=supplier.id,
        items=[{"product_id": product.id, "quantity": quantity, "unit_cost": unit_cost}],
        actor=actor,
        **kwargs,
    )


class TestCreatePurchase:

    def test_cash_purchase_adds_stock_and_expense(self, db_session, branch_a, manager_a, supplier, product):
        purchase = _buy(branch_a, manager_a, supplier, product)

        assert purchase.total == 5000
        assert quantity_of(product, branch_a) == 10
        movement = db_session.query(CashMovement).filter_by(purchase_id=purchase.id).one()
        assert movement.type == MOVEMENT_EXPENSE
        assert movement.category == CATEGORY_PURCHASE
        assert movement.amount == 5000
        assert cash_service.get_balance(branch_a.id) == -5000

    def test_purchase_increments_existing_stock(self, db_session, branch_a, manager_a, supplier, product, set_stock):
        set_stock(product, branch_a, 7)

        _buy(branch_a, manager_a, supplier, product, quantity=3)

        assert quantity_of(product, branch_a) == 10

    def test_blank_invoice_number_is_generated(self, db_session, branch_a, manager_a, supplier, product):
        purchase = _buy(branch_a, manager_a, supplier, product, invoice_number="  ")

        assert re.fullmatch(r"INV-\d{8}-[0-9A-F]{6}", purchase.invoice_number)

    def test_credit_purchase_opens_payable(self, db_session, branch_a, manager_a, supplier, product):
        purchase = _buy(branch_a, manager_a, supplier, product, type="CREDIT", invoice_number="F-001")

        account = credit_service.find_by_purchase(purchase.id)
        assert account.type == ACCOUNT_TYPE_CPP
        assert account.supplier_id == supplier.id
        assert account.invoice_number == "F-001"
        assert account.total_amount == 5000
        assert (account.due_date - utcnow()).days in (14, 15)
        assert db_session.query(CashMovement).count() == 0

    def test_unknown_supplier(self, db_session, branch_a, manager_a, product):
        with pytest.raises(NotFoundError):
            purchase_service.create_purchase(
                branch_id=branch_a.id,
                supplier_id="SUPP-missing",
                items=[{"product_id": product.id, "quantity": 1, "unit_cost": 100}],
                actor=manager_a,
            )
        assert quantity_of(product, branch_a) == 0

    @pytest.mark.parametrize("quantity", [-8, 0, float("inf"), 1e300])
    def test_unusable_quantity_is_rejected(self, db_session, branch_a, manager_a, supplier, product, quantity):
        with pytest.raises(ValidationError):
            _buy(branch_a, manager_a, supplier, product, quantity=quantity)

        assert db_session.query(Purchase).count() == 0
        assert quantity_of(product, branch_a) == 0

    def test_invalid_payment_method_is_rejected(self, db_session, branch_a, manager_a, supplier, product):
        with pytest.raises(ValidationError):
            _buy(branch_a, manager_a, supplier, product, payment_method="BARTER")

        assert db_session.query(Purchase).count() == 0

    def test_failure_after_stock_was_added_rolls_back(
        self, db_session, branch_a, manager_a, supplier, product, monkeypatch
    ):
        def failing_record_movement(**kwargs):
            assert quantity_of(product, branch_a) == 10
            raise RuntimeError("cash journal unavailable")

        monkeypatch.setattr(cash_service, "record_movement", failing_record_movement)

        with pytest.raises(RuntimeError):
            _buy(branch_a, manager_a, supplier, product)

        assert db_session.query(Purchase).count() == 0
        assert db_session.query(CashMovement).count() == 0
        assert quantity_of(product, branch_a) == 0


class TestUpdatePurchase:

    def test_notes_and_invoice_are_editable(self, db_session, branch_a, manager_a, supplier, product):
        purchase = _buy(branch_a, manager_a, supplier, product, type="CREDIT")

        updated = purchase_service.update_purchase(purchase.id, manager_a, notes="Entregado", invoice_number="F-777")

        assert updated.notes == "Entregado"
        assert updated.invoice_number == "F-777"
        assert credit_service.find_by_purchase(purchase.id).invoice_number == "F-777"

    def test_items_and_totals_are_not_editable(self, db_session, branch_a, manager_a, supplier, product):
        purchase = _buy(branch_a, manager_a, supplier, product)

        with pytest.raises(ValidationError):
            purchase_service.update_purchase(purchase.id, manager_a, total=1)

    def test_purchase_older_than_window_is_locked(self, db_session, branch_a, manager_a, supplier, product):
        purchase = _buy(branch_a, manager_a, supplier, product)
        purchase.created_at = utcnow() - timedelta(days=8)
        db_session.commit()

        with pytest.raises(PurchaseTooOldToEditError):
            purchase_service.update_purchase(purchase.id, manager_a, notes="Tarde")

        assert purchase_service.get_purchase(purchase.id).notes is None


class TestCancelPurchase:

    def test_cancel_cash_purchase(self, db_session, branch_a, manager_a, supplier, product):
        purchase = _buy(branch_a, manager_a, supplier, product)

        cancelled = purchase_service.cancel_purchase(purchase.id, manager_a)

        assert cancelled.status == "CANCELLED"
        assert quantity_of(product, branch_a) == 0
        reversal = db_session.query(CashMovement).filter_by(
            purchase_id=purchase.id, category=CATEGORY_ADJUSTMENT,
        ).one()
        assert reversal.type == MOVEMENT_INCOME
        assert cash_service.get_balance(branch_a.id) == 0

    def test_cancel_credit_purchase_deletes_payable(self, db_session, branch_a, manager_a, supplier, product):
        purchase = _buy(branch_a, manager_a, supplier, product, type="CREDIT")

        purchase_service.cancel_purchase(purchase.id, manager_a)

        assert db_session.query(CreditAccount).count() == 0
        assert quantity_of(product, branch_a) == 0

    def test_cancel_credit_purchase_with_payment_is_rejected(self, db_session, branch_a, manager_a, supplier, product):
        purchase = _buy(branch_a, manager_a, supplier, product, type="CREDIT")
        account = credit_service.find_by_purchase(purchase.id)
        credit_service.register_payment(account.id, amount=1000, actor=manager_a)

        with pytest.raises(AccountHasPaymentsError):
            purchase_service.cancel_purchase(purchase.id, manager_a)

        assert quantity_of(product, branch_a) == 10
        assert purchase_service.get_purchase(purchase.id).status == "COMPLETED"

    def test_cancel_after_goods_were_sold_is_rejected(self, db_session, branch_a, manager_a, supplier, product, set_stock):
        purchase = _buy(branch_a, manager_a, supplier, product)
        set_stock(product, branch_a, 4)

        with pytest.raises(InsufficientStockError):
            purchase_service.cancel_purchase(purchase.id, manager_a)

        assert quantity_of(product, branch_a) == 4
        assert db_session.query(CashMovement).filter_by(category=CATEGORY_ADJUSTMENT).count() == 0

    def test_cancel_twice_is_rejected(self, db_session, branch_a, manager_a, supplier, product):
        purchase = _buy(branch_a, manager_a, supplier, product)
        purchase_service.cancel_purchase(purchase.id, manager_a)

        with pytest.raises(PurchaseAlreadyCancelledError):
            purchase_service.cancel_purchase(purchase.id, manager_a)


class TestPurchaseQueries:

    def test_list_by_branch_and_supplier(self, db_session, branch_a, branch_b, admin, supplier, product):
        first = _buy(branch_a, admin, supplier, product)
        _buy(branch_b, admin, supplier, product)

        assert [p.id for p in purchase_service.list_purchases_by_branch(branch_a.id)] == [first.id]
        assert len(purchase_service.list_purchases_by_branch(None, supplier_id=supplier.id)) == 2
        assert db_session.query(Purchase).count() == 2
