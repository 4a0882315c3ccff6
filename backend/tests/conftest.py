"""
Pytest fixtures for stationpos backend tests.

Provides an in-memory database, tenant fixtures (company, store, staff),
catalog fixtures for every pricing strategy, and an authenticated client.
"""

from decimal import Decimal

import pytest
from stationpos import create_app
from stationpos.extensions import db
from stationpos.models import (
    Company,
    Store,
    User,
    Product,
    ProductVariant,
    PricingRule,
)
from stationpos.services import session_service, pricing_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CHECKOUT_RETRY_ATTEMPTS': 2,
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
        pricing_service.reset_fallback_count()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def company(db_session):
    company = Company(name="Station Co", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def other_company(db_session):
    company = Company(name="Rival Fuels", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def cashier(db_session, company):
    user = User(
        company_id=company.id,
        username="cashier_a",
        first_name="Awa",
        last_name="Diallo",
        role="cashier",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def outsider(db_session, company):
    """Cashier of the same company who is not assigned to `store`."""
    user = User(
        company_id=company.id,
        username="cashier_b",
        first_name="Ben",
        last_name="Kone",
        role="cashier",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def supervisor(db_session, company):
    user = User(
        company_id=company.id,
        username="supervisor",
        first_name="Sara",
        last_name="Traore",
        role="supervisor",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def store(db_session, company, cashier, supervisor):
    """Active store with `cashier` as employee and `supervisor` as supervisor."""
    store = Store(company_id=company.id, name="Main Station", supervisor_id=supervisor.id)
    store.employees.append(cashier)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session, other_company):
    store = Store(company_id=other_company.id, name="Rival Station")
    db_session.add(store)
    db_session.commit()
    return store


def make_product(db_session, store, **overrides) -> Product:
    """Persist a product in `store`; defaults to a fixed-price quantity item."""
    values = {
        "company_id": store.company_id,
        "store_id": store.id,
        "name": "Mineral Water 1.5L",
        "type": "quantity",
        "unit": "unit",
        "pricing_mode": "fixed",
        "base_price": Decimal("100"),
        "inventory_current": Decimal("10"),
    }
    values.update(overrides)
    product = Product(**values)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def fixed_product(db_session, store):
    return make_product(db_session, store)


@pytest.fixture(scope='function')
def fuel_product(db_session, store):
    return make_product(
        db_session,
        store,
        name="Diesel",
        type="fuel",
        unit="L",
        pricing_mode="fuel",
        base_price=Decimal("0"),
        fuel_price_per_unit=Decimal("600"),
        fuel_display_unit="L",
        inventory_current=Decimal("0"),
    )


@pytest.fixture(scope='function')
def variant_product(db_session, store):
    product = make_product(
        db_session,
        store,
        name="Engine Oil",
        pricing_mode="perUnit",
        base_price=Decimal("50"),
        inventory_current=Decimal("20"),
    )
    product.variants.append(ProductVariant(position=0, name="1L", price_offset=Decimal("0")))
    product.variants.append(ProductVariant(position=1, name="5L", price_offset=Decimal("10")))
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def dynamic_product(db_session, store):
    product = make_product(
        db_session,
        store,
        name="Charcoal",
        type="weight",
        unit="kg",
        pricing_mode="dynamic",
        base_price=Decimal("200"),
        inventory_current=Decimal("50"),
    )
    product.pricing_rules.append(
        PricingRule(position=0, name="bulk", formula="basePrice - min(quantity, 10) * 5")
    )
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def cashier_token(db_session, cashier, store):
    _, token = session_service.create_session(cashier.id)
    return token


@pytest.fixture(scope='function')
def auth_headers(cashier_token) -> dict:
    """Authorization headers for `cashier`."""
    return {'Authorization': f'Bearer {cashier_token}'}


@pytest.fixture(scope='function')
def product_factory(db_session):
    """Factory for extra products: product_factory(store, name=..., ...)."""
    def _make(store, **overrides):
        return make_product(db_session, store, **overrides)
    return _make
