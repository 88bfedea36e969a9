# Overview: Customer directory boundary and the per-order aggregate updater.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import Customer, CustomerReturnHistory
from .concurrency import lock_for_update


WALK_IN_DISPLAY_NAME = "Walk-in customer"
WALK_IN_ACQUISITION_CHANNEL = "walk_in"


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    if phone is None:
        return None
    cleaned = "".join(ch for ch in str(phone) if ch.isdigit() or ch == "+")
    return cleaned or None


def get_customer(customer_id: int, *, for_update: bool = False) -> Optional[Customer]:
    query = db.session.query(Customer).filter(Customer.id == customer_id)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def find_customer_by_phone(phone: Optional[str], *, for_update: bool = False) -> Optional[Customer]:
    phone = normalize_phone(phone)
    if not phone:
        return None
    query = db.session.query(Customer).filter(Customer.phone == phone)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def create_customer(
    *,
    name: str,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    acquisition_channel: Optional[str] = None,
) -> Customer:
    """Insert a customer with zero aggregates. Flushes; does not commit."""
    customer = Customer(
        name=name,
        phone=normalize_phone(phone),
        email=email,
        address=address,
        acquisition_channel=acquisition_channel,
        total_orders=0,
        total_spent=0,
        average_order_value=0,
    )
    db.session.add(customer)
    db.session.flush()
    return customer


def _average(total_spent: int, total_orders: int) -> int:
    # Integer average rounded half-up
    if total_orders <= 0:
        return 0
    return (2 * total_spent + total_orders) // (2 * total_orders)


def apply_order_to_aggregate(customer: Customer, *, order_total: int, order_date: datetime) -> Customer:
    """
    Fold one completed order into the customer's aggregates.

    Reads the values loaded in the current atomic unit; the customer's
    version column turns a concurrent update into a retry instead of a
    lost increment.
    """
    customer.total_orders = (customer.total_orders or 0) + 1
    customer.total_spent = (customer.total_spent or 0) + order_total
    customer.average_order_value = _average(customer.total_spent, customer.total_orders)
    if customer.first_purchase_date is None:
        customer.first_purchase_date = order_date
    customer.last_purchase_date = order_date
    return customer


def record_return_history(
    *,
    customer_id: int,
    return_request_id: int,
    returned_at: datetime,
    order_number: Optional[str],
    product_name: Optional[str],
    imei: str,
    amount: int,
) -> CustomerReturnHistory:
    entry = CustomerReturnHistory(
        customer_id=customer_id,
        return_request_id=return_request_id,
        returned_at=returned_at,
        order_number=order_number,
        product_name=product_name,
        imei=imei,
        amount=amount,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_return_history(customer_id: int) -> list[CustomerReturnHistory]:
    return (
        db.session.query(CustomerReturnHistory)
        .filter(CustomerReturnHistory.customer_id == customer_id)
        .order_by(CustomerReturnHistory.returned_at.desc(), CustomerReturnHistory.id.desc())
        .all()
    )
