"""
Pytest fixtures for ledgerpos backend tests.

Provides an in-memory database, a seeded branch/role/user set, actors,
products, a supplier, an open cashier shift and a test client.
"""

from types import SimpleNamespace

import pytest

from ledgerpos import create_app
from ledgerpos.extensions import db
from ledgerpos.identity import Actor
from ledgerpos.services import authorization_service, shift_service, staff_service, stock_service
from ledgerpos.services import supplier_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'LEDGER_RETRY_BACKOFF': 0,
    'LOG_LEVEL': 'WARNING',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
    """Fresh data for each test, same schema."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def seed(db_session):
    """
    Two branches, default roles and one user per role.

    Attributes are Actor instances (plus the two Branch rows), which is what
    every processor takes.
    """
    authorization_service.ensure_default_roles()

    main = staff_service.create_branch(name="Main Branch", operational_number="1")
    north = staff_service.create_branch(name="North Branch", operational_number="2")

    users = {
        "admin": staff_service.create_user(username="admin", role="admin"),
        "manager": staff_service.create_user(username="manager", role="manager", branch_id=main.id),
        "cashier": staff_service.create_user(username="cashier", role="cashier", branch_id=main.id),
        "north_cashier": staff_service.create_user(username="north_cashier", role="cashier", branch_id=north.id),
        "accountant": staff_service.create_user(username="accountant", role="accountant", branch_id=main.id),
        "support": staff_service.create_user(username="support", role="it_support", branch_id=main.id),
    }

    return SimpleNamespace(
        main=main,
        north=north,
        **{name: Actor.from_user(user) for name, user in users.items()},
    )


def make_product(name, *, stock=0, retail=1500, cost=1000, branch_id=None, offer=None):
    """Helper to create a product with a starting stock level."""
    product = stock_service.new_product(
        name=name,
        wholesale_cost_cents=cost,
        retail_price_cents=retail,
        offer_price_cents=offer,
        branch_id=branch_id,
    )
    product.stock = stock
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def product(seed):
    """Shared product, 5 in stock, retails at 15.00."""
    return make_product("Phone Case", stock=5, retail=1500, cost=1000)


@pytest.fixture(scope='function')
def north_product(seed):
    return make_product("North Charger", stock=4, retail=3000, cost=2000, branch_id=seed.north.id)


@pytest.fixture(scope='function')
def supplier(seed):
    return supplier_service.create_supplier(actor=seed.admin, name="Acme Wholesale")


@pytest.fixture(scope='function')
def cashier_shift(seed):
    """Open shift for the main-branch cashier with 500.00 in the drawer."""
    return shift_service.open_shift(actor=seed.cashier, opening_cents=50000)


def headers_for(actor):
    """Helper to create identity headers for the default provider."""
    return {'X-User-Id': str(actor.id)}


@pytest.fixture(scope='function')
def product_factory(seed):
    return make_product


@pytest.fixture(scope='function')
def auth_headers():
    return headers_for
