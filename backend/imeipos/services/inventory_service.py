# Overview: Service-layer operations for inventory units; lookups, transitions, and stock listings.

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..errors import InventoryUnitNotFoundError
from ..extensions import db
from ..models import InventoryUnit, StockMovement
from imeipos.time_utils import to_utc_z, utcnow
from . import unit_lifecycle as lifecycle
from .concurrency import lock_for_update
from .stock_ledger_service import SOLD_LOCATION, append_stock_movement


def get_unit(unit_id: int) -> InventoryUnit:
    unit = db.session.get(InventoryUnit, unit_id)
    if unit is None:
        raise InventoryUnitNotFoundError(
            f"Inventory unit {unit_id} not found", details={"inventory_unit_id": unit_id}
        )
    return unit


def find_unit_by_imei(imei: str) -> Optional[InventoryUnit]:
    return db.session.query(InventoryUnit).filter(InventoryUnit.imei == imei).first()


def get_unit_by_imei(imei: str) -> InventoryUnit:
    unit = find_unit_by_imei(imei)
    if unit is None:
        raise InventoryUnitNotFoundError(f"No inventory unit with IMEI {imei}", details={"imei": imei})
    return unit


def load_units_for_update(unit_ids: Iterable[int]) -> dict[int, InventoryUnit]:
    """One locking query for a set of units, keyed by id."""
    unit_ids = list(set(unit_ids))
    if not unit_ids:
        return {}
    rows = lock_for_update(
        db.session.query(InventoryUnit).filter(InventoryUnit.id.in_(unit_ids))
    ).all()
    return {unit.id: unit for unit in rows}


def apply_transition(
    unit: InventoryUnit,
    *,
    to_status: str,
    movement_type: str,
    actor_id: Optional[str] = None,
    to_location: Optional[str] = None,
    ledger_to_location: Optional[str] = None,
    quantity_change: Optional[int] = None,
    related_order_id: Optional[int] = None,
    related_document_type: Optional[str] = None,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
    when: Optional[datetime] = None,
    check: bool = True,
) -> StockMovement:
    """
    Move a unit to to_status and append the paired stock movement.

    New units arrive here with status None. check=False skips the lifecycle
    rule for confirmed re-intake, which has its own policy
    (unit_lifecycle.classify_reintake). ledger_to_location is written to the
    movement only; the unit keeps its shelf location. A unit leaving sold is
    recorded as coming from SOLD_LOCATION. Flushes; does not commit.
    """
    when = when or utcnow()
    from_status = unit.status
    if check:
        lifecycle.require_transition(from_status, to_status, imei=unit.imei)

    if from_status is None:
        from_location = None
    elif from_status == lifecycle.STATUS_SOLD:
        from_location = SOLD_LOCATION
    else:
        from_location = unit.current_location
    unit.status = to_status
    unit.last_status_change = when
    if to_location and to_location != unit.current_location:
        unit.current_location = to_location
        unit.last_location_change = when
    db.session.flush()

    return append_stock_movement(
        unit=unit,
        movement_type=movement_type,
        previous_status=from_status,
        new_status=to_status,
        quantity_change=quantity_change,
        from_location=from_location,
        to_location=ledger_to_location or to_location or unit.current_location,
        actor_id=actor_id,
        related_order_id=related_order_id,
        related_document_type=related_document_type,
        reason=reason,
        notes=notes,
        occurred_at=when,
    )


def list_units(
    *,
    status: Optional[str] = None,
    variant_id: Optional[int] = None,
    limit: int = 200,
) -> list[InventoryUnit]:
    query = db.session.query(InventoryUnit)
    if status:
        lifecycle.validate_status(status)
        query = query.filter(InventoryUnit.status == status)
    if variant_id:
        query = query.filter(InventoryUnit.variant_id == variant_id)
    return query.order_by(InventoryUnit.entry_date.asc(), InventoryUnit.id.asc()).limit(limit).all()


def list_available_for_sale(
    *,
    product_id: Optional[int] = None,
    variant_id: Optional[int] = None,
) -> list[dict]:
    """
    Sellable stock grouped product -> variant -> units.

    Units inside a variant are ordered first-in first-out by entry date so
    the counter picks the oldest device first.
    """
    query = db.session.query(InventoryUnit).filter(InventoryUnit.status == lifecycle.STATUS_IN_STOCK)
    if product_id:
        query = query.filter(InventoryUnit.product_id == product_id)
    if variant_id:
        query = query.filter(InventoryUnit.variant_id == variant_id)
    units = query.order_by(
        InventoryUnit.product_name.asc(),
        InventoryUnit.variant_sku.asc(),
        InventoryUnit.entry_date.asc(),
        InventoryUnit.id.asc(),
    ).all()

    products: dict[int, dict] = {}
    for unit in units:
        product = products.setdefault(unit.product_id, {
            "product_id": unit.product_id,
            "product_name": unit.product_name,
            "available_count": 0,
            "variants": {},
        })
        variant = product["variants"].setdefault(unit.variant_id, {
            "variant_id": unit.variant_id,
            "variant_sku": unit.variant_sku,
            "color_name": unit.color_name,
            "storage_capacity": unit.storage_capacity,
            "current_retail_price": unit.current_retail_price,
            "available_count": 0,
            "units": [],
        })
        variant["units"].append({
            "inventory_unit_id": unit.id,
            "imei": unit.imei,
            "current_retail_price": unit.current_retail_price,
            "condition": unit.condition,
            "current_location": unit.current_location,
            "entry_date": to_utc_z(unit.entry_date),
        })
        variant["available_count"] += 1
        product["available_count"] += 1

    result = []
    for product in products.values():
        product["variants"] = list(product["variants"].values())
        result.append(product)
    return result
