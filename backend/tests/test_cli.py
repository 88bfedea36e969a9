"""Tests for the flask CLI command groups."""

from sqlalchemy import update

from imeipos.cli import DEMO_CATALOG
from imeipos.models import InventoryUnit, Product, ProductVariant

IMEI_A = "123456789012345"


def test_seed_catalog_once(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "seed-catalog"])
    second = runner.invoke(args=["system", "seed-catalog"])

    assert first.exit_code == 0
    assert db_session.query(Product).count() == len(DEMO_CATALOG)
    assert db_session.query(ProductVariant).count() == sum(len(v) for _, _, v in DEMO_CATALOG)
    assert "SKIP" in second.output


def test_reconcile_reports_discrepancy(app, db_session, variant, receive):
    receive([IMEI_A])
    runner = app.test_cli_runner()

    clean = runner.invoke(args=["inventory", "reconcile"])
    assert clean.exit_code == 0
    assert "PASS" in clean.output

    db_session.execute(
        update(InventoryUnit)
        .where(InventoryUnit.imei == IMEI_A)
        .values(status="sold")
        .execution_options(synchronize_session=False)
    )
    db_session.commit()

    dirty = runner.invoke(args=["inventory", "reconcile", "--imei", IMEI_A])
    assert dirty.exit_code == 1
    assert IMEI_A in dirty.output


def test_history_and_check_imeis(app, db_session, variant, receive):
    receive([IMEI_A])
    runner = app.test_cli_runner()

    history = runner.invoke(args=["inventory", "history", IMEI_A])
    check = runner.invoke(args=["inventory", "check-imeis", IMEI_A, "123"])

    assert history.exit_code == 0
    assert "intake" in history.output
    assert "exists_blocking" in check.output
    assert "malformed" in check.output
