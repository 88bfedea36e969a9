# Overview: Service-layer operations for the stock movement ledger.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func

from ..extensions import db
from ..models import InventoryUnit, StockMovement
from . import unit_lifecycle as lifecycle

"""
Stock Movement Ledger Invariants (authoritative)

- Append-only: one row per unit state change, never updated or deleted.
- No domain/business logic in the ledger itself; callers decide what to record.
- Movements are written inside the same atomic unit as the state change they record.
- occurred_at is business time; created_at is system time (DB default).
- SUM(quantity_change) per IMEI is 1 while the unit is held and not
  disposed of, 0 otherwise.
"""

MOVEMENT_INTAKE = "intake"
MOVEMENT_SALE = "sale"
MOVEMENT_RETURN = "return"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_TRANSFER = "transfer"
MOVEMENT_WARRANTY_OUT = "warranty_out"
MOVEMENT_WARRANTY_IN = "warranty_in"
MOVEMENT_DAMAGED = "damaged"
MOVEMENT_LOST = "lost"

QUANTITY_CHANGE_BY_TYPE = {
    MOVEMENT_INTAKE: 1,
    MOVEMENT_RETURN: 1,
    MOVEMENT_WARRANTY_IN: 1,
    MOVEMENT_SALE: -1,
    MOVEMENT_WARRANTY_OUT: -1,
    MOVEMENT_DAMAGED: -1,
    MOVEMENT_LOST: -1,
    MOVEMENT_ADJUSTMENT: 0,
    MOVEMENT_TRANSFER: 0,
}

DOCUMENT_PURCHASE = "purchase"
DOCUMENT_SALE = "sale"
DOCUMENT_RETURN = "return"

# Movement destination for a unit that left with a customer
SOLD_LOCATION = "Sold"

# Statuses in which the store physically holds the unit.
HELD_STATUSES = frozenset({
    lifecycle.STATUS_IN_STOCK,
    lifecycle.STATUS_RESERVED,
    lifecycle.STATUS_RETURNED_AVAILABLE,
    lifecycle.STATUS_DEFECTIVE,
    lifecycle.STATUS_UNDER_REPAIR,
    lifecycle.STATUS_WARRANTY_IN,
})


def append_stock_movement(
    *,
    unit: InventoryUnit,
    movement_type: str,
    new_status: str,
    previous_status: Optional[str] = None,
    quantity_change: Optional[int] = None,
    from_location: Optional[str] = None,
    to_location: Optional[str] = None,
    actor_id: Optional[str] = None,
    related_order_id: Optional[int] = None,
    related_document_type: Optional[str] = None,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> StockMovement:
    """
    Append-only stock movement.

    - No domain logic here.
    - No commit: the caller's atomic unit owns the transaction.
    - quantity_change defaults to the movement type's sign.
    """
    if movement_type not in QUANTITY_CHANGE_BY_TYPE:
        raise ValueError(f"Unknown movement type: {movement_type}")
    if quantity_change is None:
        quantity_change = QUANTITY_CHANGE_BY_TYPE[movement_type]

    movement = StockMovement(
        inventory_unit_id=unit.id,
        imei=unit.imei,
        movement_type=movement_type,
        quantity_change=quantity_change,
        previous_status=previous_status,
        new_status=new_status,
        from_location=from_location,
        to_location=to_location,
        actor_id=actor_id,
        related_order_id=related_order_id,
        related_document_type=related_document_type,
        reason=reason,
        notes=notes,
        occurred_at=occurred_at,  # if None, db default applies
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def get_movement_history(inventory_unit_id: int, limit: int | None = None) -> list[StockMovement]:
    """Movements for one unit, newest first."""
    query = (
        db.session.query(StockMovement)
        .filter(StockMovement.inventory_unit_id == inventory_unit_id)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def get_imei_history(imei: str) -> list[StockMovement]:
    """Movements for one IMEI in the order they happened."""
    return (
        db.session.query(StockMovement)
        .filter(StockMovement.imei == imei)
        .order_by(StockMovement.occurred_at.asc(), StockMovement.id.asc())
        .all()
    )


def ledger_presence(imei: str) -> int:
    """SUM(quantity_change) for one IMEI (0 when it has no movements)."""
    total = (
        db.session.query(func.coalesce(func.sum(StockMovement.quantity_change), 0))
        .filter(StockMovement.imei == imei)
        .scalar()
    )
    return int(total or 0)


def ledger_presence_map(imeis: Iterable[str]) -> dict[str, int]:
    imeis = list(imeis)
    if not imeis:
        return {}
    rows = (
        db.session.query(StockMovement.imei, func.sum(StockMovement.quantity_change))
        .filter(StockMovement.imei.in_(imeis))
        .group_by(StockMovement.imei)
        .all()
    )
    presence = {imei: 0 for imei in imeis}
    for imei, total in rows:
        presence[imei] = int(total or 0)
    return presence


@dataclass(frozen=True)
class LedgerDiscrepancy:
    imei: str
    status: str | None
    ledger_sum: int
    expected: int

    def to_dict(self) -> dict:
        return {
            "imei": self.imei,
            "status": self.status,
            "ledger_sum": self.ledger_sum,
            "expected": self.expected,
        }


def expected_presence(status: str | None) -> int:
    return 1 if status in HELD_STATUSES else 0


def reconcile(imeis: Iterable[str] | None = None) -> list[LedgerDiscrepancy]:
    """
    Compare each unit's ledger sum with its current status.

    Returns one LedgerDiscrepancy per IMEI whose sum is not what the status
    implies; an empty list means the ledger and the unit store agree.
    Read-only.
    """
    query = db.session.query(InventoryUnit.imei, InventoryUnit.status)
    if imeis is not None:
        imeis = list(imeis)
        query = query.filter(InventoryUnit.imei.in_(imeis))
    units = query.all()

    sums = dict(
        db.session.query(StockMovement.imei, func.sum(StockMovement.quantity_change))
        .group_by(StockMovement.imei)
        .all()
    )

    discrepancies = []
    for imei, status in units:
        actual = int(sums.pop(imei, 0) or 0)
        expected = expected_presence(status)
        if actual != expected:
            discrepancies.append(LedgerDiscrepancy(imei, status, actual, expected))

    # Movements for IMEIs with no unit row at all
    if imeis is None:
        for imei, total in sums.items():
            if int(total or 0) != 0:
                discrepancies.append(LedgerDiscrepancy(imei, None, int(total), 0))

    return discrepancies
