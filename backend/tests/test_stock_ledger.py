"""
Tests for the stock movement ledger.

The ledger is append-only, and for each IMEI the sum of quantity_change has
to agree with the unit's status.
"""

import pytest
from sqlalchemy import update

from imeipos.db_guards import ImmutabilityViolationError
from imeipos.models import InventoryUnit, StockMovement
from imeipos.services import stock_ledger_service
from imeipos.services.stock_ledger_service import LedgerDiscrepancy, append_stock_movement

IMEI_A = "123456789012345"
IMEI_B = "123456789012346"


def _unit(session, imei):
    return session.query(InventoryUnit).filter_by(imei=imei).one()


class TestImmutability:
    def test_movement_cannot_be_updated(self, db_session, variant, receive):
        receive([IMEI_A])
        movement = db_session.query(StockMovement).one()

        movement.notes = "edited"
        with pytest.raises(ImmutabilityViolationError):
            db_session.flush()
        db_session.rollback()

        assert db_session.query(StockMovement).one().notes is None

    def test_movement_cannot_be_deleted(self, db_session, variant, receive):
        receive([IMEI_A])
        movement = db_session.query(StockMovement).one()

        db_session.delete(movement)
        with pytest.raises(ImmutabilityViolationError):
            db_session.flush()
        db_session.rollback()

        assert db_session.query(StockMovement).count() == 1

    def test_entry_price_is_write_once(self, db_session, variant, receive):
        receive([IMEI_A], unit_cost=30_000_000)
        unit = _unit(db_session, IMEI_A)

        unit.entry_price = 1
        with pytest.raises(ImmutabilityViolationError) as exc:
            db_session.flush()
        db_session.rollback()

        assert "entry_price" in str(exc.value)
        assert _unit(db_session, IMEI_A).entry_price == 30_000_000

    def test_imei_is_write_once(self, db_session, variant, receive):
        receive([IMEI_A])
        unit = _unit(db_session, IMEI_A)

        unit.imei = IMEI_B
        with pytest.raises(ImmutabilityViolationError):
            db_session.flush()
        db_session.rollback()

    def test_units_are_never_deleted(self, db_session, variant, receive):
        receive([IMEI_A])

        db_session.delete(_unit(db_session, IMEI_A))
        with pytest.raises(ImmutabilityViolationError):
            db_session.flush()
        db_session.rollback()

        assert db_session.query(InventoryUnit).count() == 1

    def test_mutable_unit_fields_still_update(self, db_session, variant, receive):
        receive([IMEI_A])
        unit = _unit(db_session, IMEI_A)

        unit.current_retail_price = 33_000_000
        db_session.commit()

        assert _unit(db_session, IMEI_A).current_retail_price == 33_000_000


class TestLedgerQueries:
    def test_append_uses_type_sign_by_default(self, db_session, variant, receive):
        receive([IMEI_A])
        unit = _unit(db_session, IMEI_A)

        movement = append_stock_movement(
            unit=unit, movement_type="transfer", previous_status="in_stock", new_status="in_stock",
            from_location="Main Store", to_location="Warehouse",
        )
        db_session.commit()

        assert movement.quantity_change == 0
        assert movement.occurred_at is not None
        assert stock_ledger_service.ledger_presence(IMEI_A) == 1

    def test_unknown_movement_type(self, db_session, variant, receive):
        receive([IMEI_A])
        with pytest.raises(ValueError):
            append_stock_movement(unit=_unit(db_session, IMEI_A), movement_type="teleport", new_status="in_stock")

    def test_history_orders(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        unit = _unit(db_session, IMEI_A)
        sell([unit])

        oldest_first = stock_ledger_service.get_imei_history(IMEI_A)
        newest_first = stock_ledger_service.get_movement_history(unit.id)

        assert [m.movement_type for m in oldest_first] == ["intake", "sale"]
        assert [m.movement_type for m in newest_first] == ["sale", "intake"]
        assert len(stock_ledger_service.get_movement_history(unit.id, limit=1)) == 1

    def test_presence_map(self, db_session, variant, receive, sell):
        receive([IMEI_A, IMEI_B])
        sell([_unit(db_session, IMEI_B)])

        presence = stock_ledger_service.ledger_presence_map([IMEI_A, IMEI_B, "999999999999999"])

        assert presence == {IMEI_A: 1, IMEI_B: 0, "999999999999999": 0}
        assert stock_ledger_service.ledger_presence_map([]) == {}


class TestReconcile:
    def test_clean_ledger(self, db_session, variant, receive, sell):
        receive([IMEI_A, IMEI_B])
        sell([_unit(db_session, IMEI_A)])

        assert stock_ledger_service.reconcile() == []
        assert stock_ledger_service.reconcile([IMEI_A]) == []

    def test_status_changed_without_movement(self, db_session, variant, receive):
        receive([IMEI_A, IMEI_B])
        db_session.execute(
            update(InventoryUnit)
            .where(InventoryUnit.imei == IMEI_A)
            .values(status="sold")
            .execution_options(synchronize_session=False)
        )
        db_session.commit()

        discrepancies = stock_ledger_service.reconcile()

        assert discrepancies == [LedgerDiscrepancy(IMEI_A, "sold", 1, 0)]
        assert discrepancies[0].to_dict()["expected"] == 0
        assert stock_ledger_service.reconcile([IMEI_B]) == []

    @pytest.mark.parametrize("status, expected", [
        ("in_stock", 1),
        ("reserved", 1),
        ("returned_available", 1),
        ("defective", 1),
        ("under_repair", 1),
        ("warranty_in", 1),
        ("sold", 0),
        ("returned", 0),
        ("warranty_out", 0),
        (None, 0),
    ])
    def test_expected_presence(self, status, expected):
        assert stock_ledger_service.expected_presence(status) == expected
