"""Tests for the atomic unit runner."""

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError

from imeipos import create_app
from imeipos.errors import CustomerNotFoundError, StoreConflictError, UnitStatusConflictError
from imeipos.extensions import db
from imeipos.models import Customer, DocumentSequence, InventoryUnit, Product, ProductVariant, SalesOrder, StockMovement
from imeipos.services import intake_service, sales_service
from imeipos.services.concurrency import run_atomic
from imeipos.services.intake_service import IntakeLine, IntakeRequest
from imeipos.services.sales_service import CartItem, SaleInput


def test_commits_result(db_session):
    def _op():
        product = Product(name="Pixel 9", brand="Google", is_active=True)
        db_session.add(product)
        db_session.flush()
        return product

    product = run_atomic(_op, name="create product")

    db_session.rollback()
    assert db_session.get(Product, product.id) is not None


def test_domain_error_is_not_retried(db_session):
    calls = []

    def _op():
        calls.append(1)
        db_session.add(Product(name="Pixel 9", brand="Google", is_active=True))
        db_session.flush()
        raise CustomerNotFoundError("Customer 1 not found")

    with pytest.raises(CustomerNotFoundError):
        run_atomic(_op, attempts=3)

    assert len(calls) == 1
    assert db_session.query(Product).count() == 0


def test_operational_error_is_retried(db_session):
    calls = []

    def _op():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("UPDATE inventory_units", {}, Exception("database is locked"))
        return "done"

    assert run_atomic(_op, attempts=3, backoff_base=0) == "done"
    assert len(calls) == 2


def test_stale_version_exhausts_attempts(db_session, customer):
    calls = []

    def _op():
        calls.append(1)
        row = db_session.get(Customer, customer.id)
        orders = row.total_orders
        # Another writer bumps the version between our read and our write
        db_session.execute(
            update(Customer)
            .where(Customer.id == customer.id)
            .values(version_id=Customer.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        row.total_orders = orders + 1
        db_session.flush()
        return row

    with pytest.raises(StoreConflictError) as exc:
        run_atomic(_op, name="aggregate", attempts=3, backoff_base=0)

    assert len(calls) == 3
    assert exc.value.retryable is True
    assert exc.value.http_status == 503
    assert exc.value.details == {"attempts": 3, "cause": "StaleDataError"}
    assert exc.value.to_dict()["retryable"] is True
    assert db_session.get(Customer, customer.id).total_orders == 0


def test_unexpected_error_rolls_back(db_session):
    def _op():
        db_session.add(Product(name="Pixel 9", brand="Google", is_active=True))
        db_session.flush()
        raise KeyError("boom")

    with pytest.raises(KeyError):
        run_atomic(_op)

    assert db_session.query(Product).count() == 0


def test_unique_collision_is_retried(db_session):
    calls = []

    def _op():
        calls.append(1)
        db_session.add(DocumentSequence(document_type="sales_order", business_date="20261017", next_number=2))
        db_session.add(DocumentSequence(document_type="sales_order", business_date="20261017", next_number=2))
        db_session.flush()

    with pytest.raises(StoreConflictError) as exc:
        run_atomic(_op, name="sequence", attempts=3, backoff_base=0)

    assert len(calls) == 3
    assert exc.value.details["cause"] == "IntegrityError"


def test_not_null_violation_is_not_retried(db_session):
    calls = []

    def _op():
        calls.append(1)
        db_session.add(Product(name=None, brand="Google", is_active=True))
        db_session.flush()

    with pytest.raises(IntegrityError):
        run_atomic(_op, name="bad product", attempts=3, backoff_base=0)

    assert len(calls) == 1
    assert db_session.query(Product).count() == 0


@pytest.fixture
def file_app(tmp_path):
    """
    App on a file database, so a second connection can commit while a
    sale's atomic unit is in flight.
    """
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'ATOMIC_UNIT_BACKOFF_BASE': 0,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.engine.dispose()


def test_concurrent_sale_of_same_unit(file_app, monkeypatch):
    product = Product(name="iPhone 15 Pro", brand="Apple", is_active=True)
    db.session.add(product)
    db.session.flush()
    variant = ProductVariant(product_id=product.id, sku="IP15P-256-NAT", retail_price=35_000_000, is_active=True)
    db.session.add(variant)
    db.session.commit()
    intake_service.create_purchase_order_with_intake(
        IntakeRequest(supplier_name="FPT Trading", lines=[IntakeLine(
            product_id=product.id, variant_id=variant.id, unit_cost=30_000_000, imeis=["123456789012345"],
        )]),
        actor_id="staff-001",
    )
    unit = db.session.query(InventoryUnit).one()
    unit_id = unit.id

    original_write = sales_service._write_phase
    writes = []

    def _write_after_rival_sale(*args, **kwargs):
        writes.append(1)
        if len(writes) == 1:
            # Another counter sells the same unit and commits first
            table = InventoryUnit.__table__
            with db.engine.begin() as conn:
                conn.execute(
                    table.update()
                    .where(table.c.id == unit_id)
                    .values(status="sold", version_id=table.c.version_id + 1)
                )
        return original_write(*args, **kwargs)

    monkeypatch.setattr(sales_service, "_write_phase", _write_after_rival_sale)

    sale = SaleInput(items=[CartItem(inventory_unit_id=unit_id, imei="123456789012345")], payment_method="cash")
    with pytest.raises(UnitStatusConflictError):
        sales_service.create_sale_order(sale, actor_id="staff-002")

    assert len(writes) == 1
    assert db.session.query(SalesOrder).count() == 0
    assert db.session.query(StockMovement).filter_by(movement_type="sale").count() == 0
    assert db.session.get(InventoryUnit, unit_id).status == "sold"
