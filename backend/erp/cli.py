# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/erp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Idempotent demo data: two branches, admin and managers, products, stock,
#   one customer and one supplier.
#
# Stock inspection:
# - python -m flask stock alerts --branch-id BRANCH-...
#   List products at or below their minimum stock.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, User, Customer, Supplier, Product
from .models.auth import ROLE_ADMIN, ROLE_MANAGER
from .services import stock_service


SEED_BRANCHES = [
    {"code": "CEN", "name": "Sucursal Central", "address": "Managua"},
    {"code": "NOR", "name": "Sucursal Norte", "address": "Estelí"},
]

# Prices in minor units
SEED_PRODUCTS = [
    {"sku": "CEM-42", "name": "Cemento 42.5kg", "category": "Construcción", "unit": "bolsa",
     "cost_price": 28000, "retail_price": 34000, "wholesale_price": 31500},
    {"sku": "VAR-38", "name": "Varilla corrugada 3/8", "category": "Acero", "unit": "unidad",
     "cost_price": 12500, "retail_price": 16000, "wholesale_price": 14500},
    {"sku": "CLV-3", "name": "Clavo 3 pulgadas", "category": "Ferretería", "unit": "libra",
     "cost_price": 3500, "retail_price": 5000, "wholesale_price": 4200},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' to load demo data.")


@system_group.command('seed')
@with_appcontext
def seed():
    """Load demo data. Existing rows (by code, username, sku, name) are kept."""
    db.create_all()

    branches = []
    for data in SEED_BRANCHES:
        branch = db.session.query(Branch).filter_by(code=data["code"]).first()
        if branch is None:
            branch = Branch(**data)
            db.session.add(branch)
            db.session.flush()
            click.echo(f"CREATE  Branch {branch.code} ({branch.id})")
        branches.append(branch)

    users = [("admin", "Administrador", ROLE_ADMIN, branches[0])]
    users += [
        (f"gerente_{branch.code.lower()}", f"Gerente {branch.name}", ROLE_MANAGER, branch)
        for branch in branches
    ]
    for username, name, role, branch in users:
        if not db.session.query(User).filter_by(username=username).first():
            user = User(username=username, name=name, role=role, branch_id=branch.id)
            db.session.add(user)
            db.session.flush()
            click.echo(f"CREATE  User {username} [{role}] ({user.id})")

    for data in SEED_PRODUCTS:
        product = db.session.query(Product).filter_by(sku=data["sku"]).first()
        if product is None:
            product = Product(**data)
            db.session.add(product)
            db.session.flush()
            click.echo(f"CREATE  Product {product.sku} ({product.id})")
        for branch in branches:
            if stock_service.find_by_product_and_branch(product.id, branch.id) is None:
                stock_service.create_stock(product.id, branch.id, quantity=100)

    if not db.session.query(Customer).filter_by(name="Constructora El Progreso").first():
        db.session.add(Customer(
            name="Constructora El Progreso",
            phone="2222-0000",
            type="WHOLESALE",
            credit_limit=5_000_000,
            credit_days=30,
        ))
        click.echo("CREATE  Customer Constructora El Progreso")

    if not db.session.query(Supplier).filter_by(name="Distribuidora Nacional").first():
        db.session.add(Supplier(
            name="Distribuidora Nacional",
            contact_name="Ventas",
            phone="2255-0000",
            credit_days=45,
            credit_limit=20_000_000,
        ))
        click.echo("CREATE  Supplier Distribuidora Nacional")

    db.session.commit()
    click.echo("PASS Seed complete.")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('alerts')
@click.option('--branch-id', required=True, help='Branch to inspect')
@with_appcontext
def stock_alerts(branch_id):
    """List products at or below their minimum stock."""
    if not db.session.get(Branch, branch_id):
        raise click.ClickException(f"Branch {branch_id} not found")

    alerts = stock_service.low_stock_alerts(branch_id)
    if not alerts:
        click.echo("No low stock alerts.")
        return

    click.echo(f"{'SKU':<12} {'Product':<30} {'Qty':>10} {'Min':>8} {'Deficit':>8}")
    for alert in alerts:
        product = alert["product"]
        click.echo(
            f"{product['sku']:<12} {product['name'][:30]:<30} "
            f"{alert['current_quantity']:>10g} {alert['min_stock']:>8g} {alert['deficit']:>8g}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
