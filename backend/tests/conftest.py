"""
Pytest fixtures for KashPOS backend tests.

Provides the test database, catalog/product fixtures, a fixed clock and the
test client.
"""

from datetime import datetime, timedelta

import pytest

from kashpos import create_app
from kashpos.domain import LineItem, OrderType
from kashpos.extensions import db
from kashpos.models import CustomerType, PaymentMethod, Product
from kashpos.services.checkout_service import CheckoutCatalog
from kashpos.services.recent_sales import RecentSaleRegistry
from kashpos.services.sql_store import SqlRecordStore


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': 'UTC',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    app.extensions["kashpos.recent_sales"] = RecentSaleRegistry(
        window_seconds=app.config["RECENT_SALE_WINDOW_SECONDS"],
    )
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    return SqlRecordStore(db_session)


class FixedClock:
    """Manually advanced clock for checkout / void-window tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope='function')
def clock():
    return FixedClock(datetime(2026, 3, 14, 10, 30, 0))


@pytest.fixture(scope='function')
def catalog(db_session):
    """Default payment methods and customer types."""
    for name, color in (("Cash", "#22c55e"), ("Card", "#3b82f6"), ("GCash", "#0ea5e9")):
        db_session.add(PaymentMethod(name=name, color=color))
    for name, color in (("Regular", "#6366f1"), ("Student", "#f59e0b"), ("Senior", "#ec4899")):
        db_session.add(CustomerType(name=name, color=color))
    db_session.commit()
    return CheckoutCatalog(
        payment_methods=frozenset({"Cash", "Card", "GCash"}),
        customer_types=frozenset({"Regular", "Student", "Senior"}),
    )


def make_product(db_session, name: str, *, stock: int, cost: int, price: int) -> Product:
    product = Product(name=name, stock_qty=stock, cost_cents=cost, price_cents=price)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def coffee(db_session):
    """Create Product: 10 in stock, cost 40.00, price 100.00."""
    return make_product(db_session, "Iced Coffee", stock=10, cost=4000, price=10000)


@pytest.fixture(scope='function')
def bread(db_session):
    """Create Product: 5 in stock, cost 10.00, price 25.00."""
    return make_product(db_session, "Pandesal", stock=5, cost=1000, price=2500)


def stock_of(db_session, product_id: int) -> int:
    return db_session.query(Product.stock_qty).filter_by(id=product_id).scalar()


def make_line(reported_at, *, qty=1, cost=400, price=1000, payment="Cash", customer="Regular",
              order_type=OrderType.NONE, cancelled=False, captured_at=None, tx="tx-1",
              number="26-03-00001", name="Iced Coffee", product_id=None):
    """Sale line value with sensible defaults; line_total = qty * price."""
    return LineItem(
        transaction_id=tx,
        transaction_number=number,
        product_id=product_id,
        product_name=name,
        unit_cost_cents=cost,
        unit_price_cents=price,
        quantity=qty,
        line_total_cents=qty * price,
        payment_method=payment,
        customer_type=customer,
        order_type=order_type,
        captured_at=captured_at or reported_at,
        reported_at=reported_at,
        cancelled=cancelled,
    )
