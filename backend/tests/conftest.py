"""
Pytest fixtures for poscore backend tests.

Provides test database setup, reference data factories, a sale service
wired to the mock gateway, and a test client.
"""

import pytest

from poscore import create_app
from poscore.config import TestConfig
from poscore.extensions import db
from poscore.models import Category, Customer, Product, Terminal, User
from poscore.services.payment_gateway import MockPaymentGateway
from poscore.services.sales_service import SaleTransactionService
from poscore.services.stock_ledger import get_quantity_on_hand


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions.pop("poscore.sale_service", None)

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def terminal(db_session):
    terminal = Terminal(terminal_number=1, name="Front Counter 1", location="Main Floor")
    db_session.add(terminal)
    db_session.commit()
    return terminal


@pytest.fixture(scope='function')
def cashier(db_session):
    user = User(username="cashier", display_name="Casey Cashier")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def manager(db_session):
    user = User(username="manager", display_name="Morgan Manager")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(customer_number="C-0001", first_name="Pat", last_name="Buyer")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Widgets")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(db_session, category):
    """Factory: make_product(sku, price_cents, quantity_on_hand=10, tax_rate_bps=0, **extra)."""
    def _make(sku, price_cents, quantity_on_hand=10, tax_rate_bps=0, **extra):
        product = Product(
            sku=sku,
            name=extra.pop("name", f"Product {sku}"),
            description=extra.pop("description", None),
            category_id=extra.pop("category_id", category.id),
            price_cents=price_cents,
            tax_rate_bps=tax_rate_bps,
            quantity_on_hand=quantity_on_hand,
            **extra,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def gateway():
    return MockPaymentGateway()


@pytest.fixture(scope='function')
def service(db_session, gateway):
    return SaleTransactionService(gateway=gateway, retry_attempts=3, retry_backoff=0.0)


def on_hand(product_id: int) -> int:
    """Read stock straight from the database."""
    return get_quantity_on_hand(product_id)


def cash(amount_cents: int, received_cents: int | None = None) -> dict:
    tender = {"method": "CASH", "amount_cents": amount_cents}
    if received_cents is not None:
        tender["detail"] = {"cash_received_cents": received_cents}
    return tender


def sale_payload(terminal_id: int, items: list, tenders: list, customer_id: int | None = None) -> dict:
    payload = {"terminal_id": terminal_id, "items": items, "tenders": tenders}
    if customer_id is not None:
        payload["customer_id"] = customer_id
    return payload


def user_headers(user_id: int) -> dict:
    """Helper to create actor headers."""
    return {'X-User-Id': str(user_id)}
