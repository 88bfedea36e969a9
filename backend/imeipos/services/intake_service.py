# Overview: Stock intake; turns a purchase order with IMEI lists into inventory units.

"""
Intake Pipeline

A purchase order is received in one all-or-nothing atomic unit:

1. Format pass (no I/O): IMEI format, batch uniqueness, unit cost > 0.
2. Existence pass (reads): one query for every IMEI; apply the re-intake policy.
3. Catalog pass (reads): resolve every (product, variant) to a snapshot.
4. Commit pass (writes only): PO header, lines, units, intake movements.

Nothing is written unless every IMEI of the batch passes every check.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from flask import current_app

from ..errors import (
    DuplicateImeiInBatchError,
    ImeiAlreadyExistsError,
    ImeiFormatError,
    ImeiMismatchError,
    InvalidAmountError,
    PayloadError,
    PurchaseOrderNotFoundError,
    ReintakeConfirmationRequired,
)
from ..extensions import db
from ..models import InventoryUnit, PurchaseOrder, PurchaseOrderLine
from ..validation import MAX_AMOUNT
from imeipos.time_utils import days_after, utcnow
from . import unit_lifecycle as lifecycle
from .catalog_service import CatalogSnapshot, resolve_catalog_snapshots
from .concurrency import lock_for_update, run_atomic
from .document_service import PURCHASE_ORDER_PREFIX, next_document_number
from .imei_service import normalize_imei, validate_imei
from .inventory_service import apply_transition
from .stock_ledger_service import (
    DOCUMENT_PURCHASE,
    MOVEMENT_INTAKE,
    ledger_presence_map,
)

PO_STATUS_COMPLETED = "completed"
DEFAULT_DELIVERY_LEAD_DAYS = 7


@dataclass
class IntakeLine:
    product_id: int
    variant_id: int
    unit_cost: int
    imeis: list[str]
    location: Optional[str] = None
    condition: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class IntakeRequest:
    supplier_name: str
    lines: list[IntakeLine]
    notes: Optional[str] = None
    order_date: Optional[datetime] = None
    expected_delivery_date: Optional[datetime] = None
    warranty_period_months: Optional[int] = None


@dataclass
class IntakeSnapshot:
    """Everything the commit pass needs, gathered by the read passes."""
    catalog: dict[tuple[int, int], CatalogSnapshot]
    reintake_units: dict[str, InventoryUnit] = field(default_factory=dict)
    reintake_presence: dict[str, int] = field(default_factory=dict)


# =============================================================================
# PASS 1: FORMAT (no I/O)
# =============================================================================

def check_intake_format(request: IntakeRequest) -> list[IntakeLine]:
    """
    Validate and normalize a request without touching the store.

    Returns the lines with IMEIs stripped of surrounding whitespace.
    """
    if not request.supplier_name or not request.supplier_name.strip():
        raise PayloadError("supplier_name is required", {"field": "supplier_name"})
    if not request.lines:
        raise PayloadError("At least one line is required", {"field": "lines"})

    lines = []
    for index, line in enumerate(request.lines):
        if isinstance(line.unit_cost, bool) or not isinstance(line.unit_cost, int):
            raise InvalidAmountError("unit_cost must be an integer", {"line": index})
        if line.unit_cost <= 0 or line.unit_cost > MAX_AMOUNT:
            raise InvalidAmountError(
                "unit_cost must be greater than 0",
                {"line": index, "unit_cost": line.unit_cost},
            )
        imeis = [normalize_imei(v) for v in (line.imeis or [])]
        if not imeis:
            raise PayloadError("Each line needs at least one IMEI", {"line": index})
        lines.append(IntakeLine(
            product_id=line.product_id,
            variant_id=line.variant_id,
            unit_cost=line.unit_cost,
            imeis=imeis,
            location=line.location,
            condition=line.condition,
            notes=line.notes,
        ))

    all_imeis = [imei for line in lines for imei in line.imeis]

    malformed = [imei for imei in all_imeis if not validate_imei(imei)]
    if malformed:
        raise ImeiFormatError(
            f"{len(malformed)} IMEI(s) are not exactly 15 digits",
            {"imeis": malformed},
        )

    duplicates = sorted(imei for imei, n in Counter(all_imeis).items() if n > 1)
    if duplicates:
        raise DuplicateImeiInBatchError(
            f"{len(duplicates)} IMEI(s) appear more than once in this intake",
            {"imeis": duplicates},
        )

    return lines


# =============================================================================
# PASSES 2-3: EXISTENCE + CATALOG (reads only)
# =============================================================================

def _read_phase(lines: list[IntakeLine], confirmed: set[str]) -> IntakeSnapshot:
    all_imeis = [imei for line in lines for imei in line.imeis]
    variant_by_imei = {imei: (line.product_id, line.variant_id) for line in lines for imei in line.imeis}

    existing = lock_for_update(
        db.session.query(InventoryUnit).filter(InventoryUnit.imei.in_(all_imeis))
    ).all()

    blocking = []
    unconfirmed = []
    reintake_units = {}
    for unit in existing:
        policy = lifecycle.classify_reintake(unit.status)
        if policy == lifecycle.REINTAKE_BLOCKING:
            blocking.append({"imei": unit.imei, "status": unit.status})
        elif unit.imei not in confirmed:
            unconfirmed.append(unit.imei)
        else:
            reintake_units[unit.imei] = unit

    if blocking:
        raise ImeiAlreadyExistsError(
            f"{len(blocking)} IMEI(s) already exist in inventory",
            {"imeis": [b["imei"] for b in blocking], "existing": blocking},
        )
    if unconfirmed:
        raise ReintakeConfirmationRequired(sorted(unconfirmed))

    for imei, unit in reintake_units.items():
        if (unit.product_id, unit.variant_id) != variant_by_imei[imei]:
            raise ImeiMismatchError(
                f"IMEI {imei} was previously received as a different product variant",
                {
                    "imei": imei,
                    "existing_variant_id": unit.variant_id,
                    "requested_variant_id": variant_by_imei[imei][1],
                },
            )

    catalog = resolve_catalog_snapshots((line.product_id, line.variant_id) for line in lines)

    return IntakeSnapshot(
        catalog=catalog,
        reintake_units=reintake_units,
        reintake_presence=ledger_presence_map(reintake_units.keys()),
    )


# =============================================================================
# PASS 4: COMMIT (writes only)
# =============================================================================

def _write_phase(
    request: IntakeRequest,
    lines: list[IntakeLine],
    snapshot: IntakeSnapshot,
    actor_id: Optional[str],
) -> PurchaseOrder:
    config = current_app.config
    now = utcnow()
    order_date = request.order_date or now
    default_location = config.get("DEFAULT_LOCATION", "Main Store")
    default_condition = config.get("DEFAULT_CONDITION", "new")
    warranty_months = request.warranty_period_months or config.get("DEFAULT_WARRANTY_MONTHS", 12)

    subtotal = sum(line.unit_cost * len(line.imeis) for line in lines)
    po = PurchaseOrder(
        order_number=next_document_number(
            document_type="purchase_order", prefix=PURCHASE_ORDER_PREFIX, when=now
        ),
        supplier_name=request.supplier_name.strip(),
        order_date=order_date,
        expected_delivery_date=request.expected_delivery_date
        or days_after(order_date, DEFAULT_DELIVERY_LEAD_DAYS),
        actual_delivery_date=now,
        status=PO_STATUS_COMPLETED,
        subtotal=subtotal,
        tax_amount=0,
        shipping_cost=0,
        total_amount=subtotal,
        currency=config.get("CURRENCY", "VND"),
        payment_status="pending",
        total_items=sum(len(line.imeis) for line in lines),
        total_variants=len({(line.product_id, line.variant_id) for line in lines}),
        notes=request.notes,
        received_by=actor_id,
    )
    db.session.add(po)
    db.session.flush()

    for line in lines:
        catalog = snapshot.catalog[(line.product_id, line.variant_id)]
        location = line.location or default_location
        condition = line.condition or default_condition

        db.session.add(PurchaseOrderLine(
            purchase_order_id=po.id,
            product_id=catalog.product_id,
            variant_id=catalog.variant_id,
            product_name=catalog.product_name,
            variant_sku=catalog.variant_sku,
            color_name=catalog.color_name,
            storage_capacity=catalog.storage_capacity,
            quantity=len(line.imeis),
            unit_cost=line.unit_cost,
            total_cost=line.unit_cost * len(line.imeis),
            received_imeis=list(line.imeis),
            condition=condition,
            location=location,
            notes=line.notes,
        ))

        for imei in line.imeis:
            unit = snapshot.reintake_units.get(imei)
            if unit is not None:
                _restamp_reintake(unit, po=po, catalog=catalog, condition=condition, actor_id=actor_id, now=now)
                apply_transition(
                    unit,
                    to_status=lifecycle.STATUS_IN_STOCK,
                    movement_type=MOVEMENT_INTAKE,
                    actor_id=actor_id,
                    to_location=location,
                    quantity_change=1 - snapshot.reintake_presence.get(imei, 0),
                    related_order_id=po.id,
                    related_document_type=DOCUMENT_PURCHASE,
                    reason="Confirmed re-intake",
                    notes=line.notes,
                    when=now,
                    check=False,
                )
                continue

            unit = InventoryUnit(
                imei=imei,
                product_id=catalog.product_id,
                variant_id=catalog.variant_id,
                product_name=catalog.product_name,
                variant_sku=catalog.variant_sku,
                color_name=catalog.color_name,
                storage_capacity=catalog.storage_capacity,
                entry_price=line.unit_cost,
                original_retail_price=catalog.retail_price,
                current_retail_price=catalog.retail_price,
                current_location=location,
                condition=condition,
                quality_notes=line.notes,
                warranty_period_months=warranty_months,
                purchase_order_id=po.id,
                supplier_name=po.supplier_name,
                entry_date=now,
                received_by=actor_id,
                last_location_change=now,
            )
            db.session.add(unit)
            apply_transition(
                unit,
                to_status=lifecycle.STATUS_IN_STOCK,
                movement_type=MOVEMENT_INTAKE,
                actor_id=actor_id,
                to_location=location,
                related_order_id=po.id,
                related_document_type=DOCUMENT_PURCHASE,
                reason="Purchase order intake",
                notes=line.notes,
                when=now,
            )

    db.session.flush()
    return po


def _restamp_reintake(unit, *, po, catalog, condition, actor_id, now):
    # entry_price stays as first recorded
    unit.purchase_order_id = po.id
    unit.supplier_name = po.supplier_name
    unit.received_by = actor_id
    unit.entry_date = now
    unit.condition = condition
    unit.current_retail_price = catalog.retail_price
    unit.sales_order_id = None
    unit.sale_date = None
    unit.actual_sale_price = None
    unit.warranty_start_date = None


# =============================================================================
# PUBLIC API
# =============================================================================

def create_purchase_order_with_intake(
    request: IntakeRequest,
    *,
    actor_id: Optional[str],
    confirmed_imeis: Iterable[str] = (),
) -> PurchaseOrder:
    """
    Receive a purchase order and create one in_stock unit per IMEI.

    Args:
        request: supplier, lines (product, variant, unit cost, IMEIs) and notes
        actor_id: operator performing the intake, stamped on units and movements
        confirmed_imeis: IMEIs in returned / returned_available the operator
            has explicitly agreed to receive again

    Raises:
        PayloadError, ImeiFormatError, DuplicateImeiInBatchError, InvalidAmountError:
            before any store access
        ImeiAlreadyExistsError, ReintakeConfirmationRequired, ImeiMismatchError,
        CatalogEntryNotFoundError: from the read passes; nothing is written
        StoreConflictError: concurrent writers outlasted the retry budget
    """
    lines = check_intake_format(request)
    confirmed = {normalize_imei(v) for v in confirmed_imeis}

    def _op() -> PurchaseOrder:
        snapshot = _read_phase(lines, confirmed)
        return _write_phase(request, lines, snapshot, actor_id)

    po = run_atomic(_op, name="intake")
    current_app.logger.info(
        "Intake %s committed: %d unit(s) from %s by %s",
        po.order_number, po.total_items, po.supplier_name, actor_id,
    )
    return po


def get_purchase_order_with_lines(purchase_order_id: int) -> dict:
    po = db.session.get(PurchaseOrder, purchase_order_id)
    if po is None:
        raise PurchaseOrderNotFoundError(
            f"Purchase order {purchase_order_id} not found",
            {"purchase_order_id": purchase_order_id},
        )
    return po.to_dict(include_lines=True)


def list_recent_purchase_orders(limit: int = 50) -> list[PurchaseOrder]:
    return (
        db.session.query(PurchaseOrder)
        .order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc())
        .limit(limit)
        .all()
    )
