"""
Pytest fixtures for the IMEI POS backend tests.

Provides an in-memory database, a clean slate per test, a small catalog,
a customer, and helpers that drive intake and sale through the services.
"""

import pytest
from imeipos import create_app
from imeipos.extensions import db
from imeipos.models import Customer, Product, ProductVariant
from imeipos.services import intake_service, sales_service
from imeipos.services.intake_service import IntakeLine, IntakeRequest
from imeipos.services.sales_service import CartItem, SaleInput


IMEI_A = "123456789012345"
IMEI_B = "123456789012346"
IMEI_C = "123456789012347"

ACTOR = "staff-001"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ATOMIC_UNIT_BACKOFF_BASE': 0,
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
        # Clear all data but keep schema (core deletes bypass the ORM ledger guards)
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(name="iPhone 15 Pro", brand="Apple", is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant(db_session, product):
    """256GB Natural Titanium, retail 35,000,000 VND."""
    variant = ProductVariant(
        product_id=product.id,
        sku="IP15P-256-NAT",
        color_name="Natural Titanium",
        storage_capacity="256GB",
        retail_price=35_000_000,
        is_active=True,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def other_variant(db_session, product):
    variant = ProductVariant(
        product_id=product.id,
        sku="IP15P-128-BLK",
        color_name="Black Titanium",
        storage_capacity="128GB",
        retail_price=28_990_000,
        is_active=True,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Nguyen Van A", phone="0901234567", email="a@example.vn")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def receive(variant):
    """Receive IMEIs for the default variant: receive([imei, ...], unit_cost=...)."""
    def _receive(imeis, *, unit_cost=30_000_000, target=None, confirmed=(), supplier="FPT Trading"):
        target = target or variant
        request = IntakeRequest(
            supplier_name=supplier,
            lines=[IntakeLine(
                product_id=target.product_id,
                variant_id=target.id,
                unit_cost=unit_cost,
                imeis=list(imeis),
            )],
        )
        return intake_service.create_purchase_order_with_intake(
            request, actor_id=ACTOR, confirmed_imeis=confirmed
        )
    return _receive


@pytest.fixture(scope='function')
def sell():
    """Sell units: sell([unit, ...], payment_method="cash", **sale_fields)."""
    def _sell(units, *, payment_method="cash", **fields):
        sale = SaleInput(
            items=[CartItem(inventory_unit_id=u.id, imei=u.imei) for u in units],
            payment_method=payment_method,
            **fields,
        )
        return sales_service.create_sale_order(sale, actor_id=ACTOR, staff_name="Tran Thi B")
    return _sell


def actor_headers(actor_id: str = ACTOR) -> dict:
    """Helper to create actor identity headers."""
    return {'X-Actor-Id': actor_id, 'X-Actor-Name': 'Test Staff'}
