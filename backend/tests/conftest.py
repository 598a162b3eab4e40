"""
Pytest fixtures for kasir backend tests.

Provides an in-memory database, store/product fixtures and the test client.

NOTE: fixtures commit their rows. Sales and manual stock movements open their
own write transaction (BEGIN IMMEDIATE on SQLite), which cannot start while
the session still holds uncommitted writes.
"""

from decimal import Decimal

import pytest

from kasir import create_app
from kasir.extensions import db
from kasir.models import Store, Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

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

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_store(session, name="Toko A", code="A", tax_rate="10", timezone="Asia/Makassar", **kwargs):
    store = Store(name=name, code=code, tax_rate=Decimal(tax_rate), timezone=timezone, **kwargs)
    session.add(store)
    session.commit()
    return store


def make_product(session, store, name="Kopi", price=10000, cost=6000, stock=20, **kwargs):
    product = Product(store_id=store.id, name=name, price=price, cost=cost, stock=stock, **kwargs)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def store(db_session):
    """Store A with a 10% tax rate."""
    return make_store(db_session)


@pytest.fixture(scope='function')
def other_store(db_session):
    """Store B (second tenant)."""
    return make_store(db_session, name="Toko B", code="B", tax_rate="0")


@pytest.fixture(scope='function')
def product(db_session, store):
    """Tracked product: price 10000, cost 6000, stock 20."""
    return make_product(db_session, store)


@pytest.fixture(scope='function')
def headers(store):
    """Tenant context headers as forwarded by the auth gateway."""
    return {"X-Store-Id": str(store.id), "X-User-Id": "7"}
