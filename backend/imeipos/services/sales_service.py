# Overview: Point-of-sale transaction engine; one cart becomes one completed sales order.

"""
Sale Transaction Engine

A sale is one atomic unit with three explicit phases:

READ      every referenced inventory unit (one query) and the customer record
VALIDATE  pure checks against the values read in this unit: IMEI match,
          status exactly in_stock, totals, cash tendered
WRITE     customer (if new walk-in), order + lines, units -> sold,
          sale movements (-1), customer aggregate

Any failure before WRITE leaves the store untouched; a store conflict during
commit re-runs all three phases from scratch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import current_app

from ..errors import (
    CustomerNotFoundError,
    ImeiFormatError,
    ImeiMismatchError,
    InvalidAmountError,
    InventoryUnitNotFoundError,
    PayloadError,
    SalesOrderNotFoundError,
    UnitStatusConflictError,
)
from ..extensions import db
from ..models import Customer, InventoryUnit, SalesOrder, SalesOrderLine
from ..validation import MAX_AMOUNT
from imeipos.time_utils import utcnow
from . import customer_service
from . import unit_lifecycle as lifecycle
from .concurrency import run_atomic
from .document_service import SALES_ORDER_PREFIX, next_document_number
from .imei_service import normalize_imei, validate_imei
from .inventory_service import apply_transition, load_units_for_update
from .stock_ledger_service import DOCUMENT_SALE, MOVEMENT_SALE, SOLD_LOCATION


# =============================================================================
# CONSTANTS
# =============================================================================

PAYMENT_CASH = "cash"
PAYMENT_METHODS = frozenset({
    PAYMENT_CASH,
    "bank_transfer",
    "credit_card",
    "debit_card",
    "apple_pay",
    "qr_code",
})

ORDER_STATUS_COMPLETED = "completed"
PAYMENT_STATUS_PAID = "paid"
DEFAULT_SALES_CHANNEL = "pos"

# Tax rates are basis points: 1000 == 10.00%
BPS_DENOMINATOR = 10_000


# =============================================================================
# INPUT / SNAPSHOT TYPES
# =============================================================================

@dataclass
class CartItem:
    inventory_unit_id: int
    imei: str


@dataclass
class CustomerInfo:
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


@dataclass
class SaleInput:
    items: list[CartItem]
    payment_method: str
    tax_rate_bps: int = 0
    discount_amount: int = 0
    shipping_amount: int = 0
    customer_id: Optional[int] = None
    customer_info: Optional[CustomerInfo] = None
    amount_received: Optional[int] = None
    sales_channel: str = DEFAULT_SALES_CHANNEL
    notes: Optional[str] = None


@dataclass
class SaleSnapshot:
    """Values read inside the atomic unit; validation and writes use only these."""
    units: dict[int, InventoryUnit]
    customer: Optional[Customer]
    create_walk_in: bool


@dataclass(frozen=True)
class SaleTotals:
    subtotal: int
    tax: int
    discount: int
    shipping: int
    total: int


def compute_totals(prices: list[int], *, tax_rate_bps: int, discount: int, shipping: int) -> SaleTotals:
    """
    subtotal = sum(prices); tax = subtotal * rate rounded half-up;
    total = subtotal + tax - discount + shipping.
    """
    subtotal = sum(prices)
    tax = (subtotal * tax_rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR
    return SaleTotals(
        subtotal=subtotal,
        tax=tax,
        discount=discount,
        shipping=shipping,
        total=subtotal + tax - discount + shipping,
    )


# =============================================================================
# FORMAT PASS (no I/O)
# =============================================================================

def _check_amount(value, field: str, *, upper: int = MAX_AMOUNT) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(f"{field} must be an integer", {"field": field})
    if value < 0 or value > upper:
        raise InvalidAmountError(f"{field} must be between 0 and {upper}", {"field": field, "value": value})
    return value


def check_sale_format(sale: SaleInput) -> list[CartItem]:
    if not sale.items:
        raise PayloadError("Cart is empty", {"field": "items"})

    items = []
    seen = set()
    for index, item in enumerate(sale.items):
        imei = normalize_imei(item.imei)
        if not validate_imei(imei):
            raise ImeiFormatError(f"IMEI {imei!r} is not exactly 15 digits", {"line": index, "imei": imei})
        if item.inventory_unit_id in seen:
            raise PayloadError(
                f"Inventory unit {item.inventory_unit_id} appears more than once in the cart",
                {"line": index, "inventory_unit_id": item.inventory_unit_id},
            )
        seen.add(item.inventory_unit_id)
        items.append(CartItem(inventory_unit_id=item.inventory_unit_id, imei=imei))

    if sale.payment_method not in PAYMENT_METHODS:
        raise PayloadError(
            f"Unknown payment method '{sale.payment_method}'",
            {"field": "payment_method", "allowed": sorted(PAYMENT_METHODS)},
        )
    _check_amount(sale.tax_rate_bps, "tax_rate_bps", upper=BPS_DENOMINATOR)
    _check_amount(sale.discount_amount, "discount_amount")
    _check_amount(sale.shipping_amount, "shipping_amount")
    if sale.amount_received is not None:
        _check_amount(sale.amount_received, "amount_received")
    return items


# =============================================================================
# PHASES
# =============================================================================

def _read_phase(sale: SaleInput, items: list[CartItem]) -> SaleSnapshot:
    units = load_units_for_update(item.inventory_unit_id for item in items)

    customer = None
    create_walk_in = False
    if sale.customer_id is not None:
        customer = customer_service.get_customer(sale.customer_id, for_update=True)
        if customer is None:
            raise CustomerNotFoundError(
                f"Customer {sale.customer_id} not found", {"customer_id": sale.customer_id}
            )
    elif sale.customer_info and customer_service.normalize_phone(sale.customer_info.phone):
        customer = customer_service.find_customer_by_phone(sale.customer_info.phone, for_update=True)
        # A directory record needs both a name and a phone
        create_walk_in = customer is None and bool((sale.customer_info.name or "").strip())

    return SaleSnapshot(units=units, customer=customer, create_walk_in=create_walk_in)


def _validate_phase(sale: SaleInput, items: list[CartItem], snapshot: SaleSnapshot) -> SaleTotals:
    for index, item in enumerate(items):
        unit = snapshot.units.get(item.inventory_unit_id)
        if unit is None:
            raise InventoryUnitNotFoundError(
                f"Inventory unit {item.inventory_unit_id} not found",
                {"line": index, "inventory_unit_id": item.inventory_unit_id, "imei": item.imei},
            )
        if unit.imei != item.imei:
            raise ImeiMismatchError(
                f"IMEI {item.imei} does not match inventory unit {unit.id}",
                {"line": index, "inventory_unit_id": unit.id, "imei": item.imei},
            )
        if unit.status != lifecycle.STATUS_IN_STOCK:
            raise UnitStatusConflictError(
                f"IMEI {unit.imei} is not available for sale (status: {unit.status})",
                {"line": index, "imei": unit.imei, "status": unit.status},
            )

    totals = compute_totals(
        [snapshot.units[item.inventory_unit_id].current_retail_price for item in items],
        tax_rate_bps=sale.tax_rate_bps,
        discount=sale.discount_amount,
        shipping=sale.shipping_amount,
    )
    if totals.total < 0:
        raise InvalidAmountError(
            "Discount exceeds order value",
            {"subtotal": totals.subtotal, "discount_amount": totals.discount},
        )
    if (
        sale.payment_method == PAYMENT_CASH
        and sale.amount_received is not None
        and sale.amount_received < totals.total
    ):
        raise InvalidAmountError(
            "Cash received is less than the order total",
            {"amount_received": sale.amount_received, "total_amount": totals.total},
        )
    return totals


def _write_phase(
    sale: SaleInput,
    items: list[CartItem],
    snapshot: SaleSnapshot,
    totals: SaleTotals,
    actor_id: Optional[str],
    staff_name: Optional[str],
) -> SalesOrder:
    now = utcnow()
    info = sale.customer_info or CustomerInfo()

    customer = snapshot.customer
    if snapshot.create_walk_in:
        customer = customer_service.create_customer(
            name=info.name.strip(),
            phone=info.phone,
            email=info.email,
            address=info.address,
            acquisition_channel=customer_service.WALK_IN_ACQUISITION_CHANNEL,
        )

    if sale.payment_method == PAYMENT_CASH and sale.amount_received is not None:
        amount_received = sale.amount_received
    else:
        amount_received = totals.total

    order = SalesOrder(
        order_number=next_document_number(document_type="sales_order", prefix=SALES_ORDER_PREFIX, when=now),
        order_date=now,
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else info.name,
        customer_phone=customer.phone if customer else info.phone,
        customer_email=(customer.email if customer else None) or info.email,
        customer_address=(customer.address if customer else None) or info.address,
        subtotal_amount=totals.subtotal,
        tax_rate_bps=sale.tax_rate_bps,
        tax_amount=totals.tax,
        discount_amount=totals.discount,
        shipping_amount=totals.shipping,
        total_amount=totals.total,
        currency=current_app.config.get("CURRENCY", "VND"),
        payment_method=sale.payment_method,
        payment_status=PAYMENT_STATUS_PAID,
        amount_received=amount_received,
        change_given=amount_received - totals.total,
        status=ORDER_STATUS_COMPLETED,
        sales_channel=sale.sales_channel or DEFAULT_SALES_CHANNEL,
        staff_id=actor_id,
        staff_name=staff_name,
        total_items=len(items),
        notes=sale.notes,
    )
    db.session.add(order)
    db.session.flush()

    for item in items:
        unit = snapshot.units[item.inventory_unit_id]
        db.session.add(SalesOrderLine(
            sales_order_id=order.id,
            inventory_unit_id=unit.id,
            imei=unit.imei,
            product_id=unit.product_id,
            variant_id=unit.variant_id,
            product_name=unit.product_name,
            variant_sku=unit.variant_sku,
            color_name=unit.color_name,
            storage_capacity=unit.storage_capacity,
            quantity=1,
            unit_cost=unit.entry_price,
            sale_price=unit.current_retail_price,
            final_price=unit.current_retail_price,
            entry_date_of_unit=unit.entry_date,
        ))

        unit.sales_order_id = order.id
        unit.sale_date = now
        unit.actual_sale_price = unit.current_retail_price
        unit.warranty_start_date = now
        apply_transition(
            unit,
            to_status=lifecycle.STATUS_SOLD,
            movement_type=MOVEMENT_SALE,
            actor_id=actor_id,
            ledger_to_location=SOLD_LOCATION,
            related_order_id=order.id,
            related_document_type=DOCUMENT_SALE,
            reason=f"Sold on {order.order_number}",
            when=now,
        )

    if customer is not None:
        customer_service.apply_order_to_aggregate(customer, order_total=totals.total, order_date=now)

    db.session.flush()
    return order


# =============================================================================
# PUBLIC API
# =============================================================================

def create_sale_order(
    sale: SaleInput,
    *,
    actor_id: Optional[str],
    staff_name: Optional[str] = None,
) -> SalesOrder:
    """
    Sell every unit in the cart as one completed order, or nothing.

    The first offending cart line (missing unit, IMEI mismatch, status not
    in_stock) aborts the whole sale before any write.
    """
    items = check_sale_format(sale)

    def _op() -> SalesOrder:
        snapshot = _read_phase(sale, items)
        totals = _validate_phase(sale, items, snapshot)
        return _write_phase(sale, items, snapshot, totals, actor_id, staff_name)

    order = run_atomic(_op, name="sale")
    current_app.logger.info(
        "Sale %s committed: %d unit(s), total %d %s, staff %s",
        order.order_number, order.total_items, order.total_amount, order.currency, actor_id,
    )
    return order


def get_sales_order(order_id: int) -> SalesOrder:
    order = db.session.get(SalesOrder, order_id)
    if order is None:
        raise SalesOrderNotFoundError(f"Sales order {order_id} not found", {"sales_order_id": order_id})
    return order


def get_sales_order_with_lines(order_id: int) -> dict:
    return get_sales_order(order_id).to_dict(include_lines=True)


def list_sales_orders_for_customer(customer_id: int) -> list[SalesOrder]:
    if customer_service.get_customer(customer_id) is None:
        raise CustomerNotFoundError(f"Customer {customer_id} not found", {"customer_id": customer_id})
    return (
        db.session.query(SalesOrder)
        .filter(SalesOrder.customer_id == customer_id)
        .order_by(SalesOrder.order_date.desc(), SalesOrder.id.desc())
        .all()
    )
