"""
Pytest fixtures for the ERP backend tests.

Provides an in-memory database, two branches with their staff, a small
catalog, a credit customer, a supplier and a stock helper.
"""

import pytest

from erp import create_app
from erp.config import TestConfig
from erp.extensions import db
from erp.models import Branch, User, Product, Customer, Supplier
from erp.models.auth import ROLE_ADMIN, ROLE_MANAGER, ROLE_CASHIER
from erp.services import stock_service
from erp.services.access_service import actor_from_user


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh tables for each test."""
    # Clear all data but keep schema
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def branch_a(db_session):
    branch = Branch(name="Sucursal A", code="A")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def branch_b(db_session):
    branch = Branch(name="Sucursal B", code="B")
    db_session.add(branch)
    db_session.commit()
    return branch


def _make_user(db_session, username, role, branch):
    user = User(username=username, name=username.title(), role=role, branch_id=branch.id)
    db_session.add(user)
    db_session.commit()
    return actor_from_user(user)


@pytest.fixture(scope='function')
def admin(db_session, branch_a):
    """ADMIN actor whose home branch is A."""
    return _make_user(db_session, "admin", ROLE_ADMIN, branch_a)


@pytest.fixture(scope='function')
def manager_a(db_session, branch_a):
    return _make_user(db_session, "gerente_a", ROLE_MANAGER, branch_a)


@pytest.fixture(scope='function')
def manager_b(db_session, branch_b):
    return _make_user(db_session, "gerente_b", ROLE_MANAGER, branch_b)


@pytest.fixture(scope='function')
def cashier_a(db_session, branch_a):
    return _make_user(db_session, "cajero_a", ROLE_CASHIER, branch_a)


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(
        sku="CEM-001",
        name="Cemento",
        unit="bolsa",
        cost_price=500,
        retail_price=1000,
        wholesale_price=800,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def other_product(db_session):
    product = Product(
        sku="VAR-001",
        name="Varilla",
        unit="unidad",
        cost_price=200,
        retail_price=350,
        wholesale_price=300,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    """Credit customer with a 5000 limit and no debt."""
    customer = Customer(name="Ferretería López", credit_limit=5000, current_debt=0, credit_days=30)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Distribuidora Nacional", credit_days=15, credit_limit=100000)
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def set_stock(db_session):
    """Create (or overwrite) the stock row of a product at a branch."""
    def _set(product, branch, quantity, min_stock=None):
        stock = stock_service.find_by_product_and_branch(product.id, branch.id)
        if stock is None:
            stock = stock_service.create_stock(product.id, branch.id, quantity=quantity, min_stock=min_stock)
        else:
            stock_service.set_quantity(stock.id, quantity)
        db_session.commit()
        return stock

    return _set


def quantity_of(product, branch):
    """Quantity on hand read straight from the database."""
    db.session.expire_all()
    return stock_service.get_available_quantity(product.id, branch.id)


def headers_for(actor) -> dict:
    return {"X-User-Id": actor.user_id}
