# Overview: Flask CLI command group for bootstrap and stock inspection.

# backend/poscore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask pos <command> [options]
#
# - python -m flask pos init-db
#   Create all tables (development; production uses migrations).
# - python -m flask pos seed-demo
#   Idempotently create terminal 1, a cashier, a category and demo products with stock.
# - python -m flask pos stock SKU
#   Print price, tax rate and on-hand quantity for a SKU.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Product, Terminal, User
from .services.money import bps_to_percent, format_cents


DEMO_PRODUCTS = [
    # sku, name, price_cents, tax_rate_bps, quantity_on_hand
    ("DEMO-COFFEE", "Ground Coffee 1lb", 1299, 850, 40),
    ("DEMO-MUG", "Ceramic Mug", 899, 850, 25),
    ("DEMO-FILTER", "Paper Filters (100)", 349, 0, 100),
]


@click.group('pos')
def pos_group():
    """Sale engine bootstrap commands."""


@pos_group.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Tables created")


@pos_group.command('seed-demo')
@with_appcontext
def seed_demo_command():
    """Create demo reference data (safe to run repeatedly)."""
    terminal = db.session.query(Terminal).filter_by(terminal_number=1).first()
    if not terminal:
        terminal = Terminal(terminal_number=1, name="Front Counter 1", location="Main Floor")
        db.session.add(terminal)
        click.echo("PASS Created terminal 1")
    else:
        click.echo("WARN  Terminal 1 already exists, skipping...")

    cashier = db.session.query(User).filter_by(username="cashier").first()
    if not cashier:
        cashier = User(username="cashier", display_name="Demo Cashier")
        db.session.add(cashier)
        click.echo("PASS Created user: cashier")
    else:
        click.echo("WARN  User 'cashier' already exists, skipping...")

    category = db.session.query(Category).filter_by(name="Demo").first()
    if not category:
        category = Category(name="Demo")
        db.session.add(category)
        db.session.flush()

    for sku, name, price_cents, tax_rate_bps, on_hand in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            click.echo(f"WARN  Product {sku} already exists, skipping...")
            continue
        db.session.add(Product(
            sku=sku,
            name=name,
            category_id=category.id,
            price_cents=price_cents,
            tax_rate_bps=tax_rate_bps,
            quantity_on_hand=on_hand,
        ))
        click.echo(
            f"PASS Created product {sku} at {format_cents(price_cents)} "
            f"(tax {bps_to_percent(tax_rate_bps)}%, {on_hand} on hand)"
        )

    db.session.commit()
    click.echo(f"\nTerminal ID: {terminal.id}  Cashier ID: {cashier.id}")


@pos_group.command('stock')
@click.argument('sku')
@with_appcontext
def stock_command(sku):
    """Print price, tax rate and on-hand quantity for a SKU."""
    product = db.session.query(Product).filter_by(sku=sku).first()
    if not product:
        raise click.ClickException(f"Product {sku} not found")
    state = "active" if product.is_active else "inactive"
    click.echo(
        f"{product.sku}  {product.name}  price={format_cents(product.price_cents)}  "
        f"tax={bps_to_percent(product.tax_rate_bps or 0)}%  "
        f"on_hand={product.quantity_on_hand}  ({state})"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(pos_group)
