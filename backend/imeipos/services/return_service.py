"""
Return Processing Service

A return request names one sold IMEI. Staff create it at the counter; a
manager approves or rejects it.

LIFECYCLE:
1. Create request (pending) - at most one pending request per IMEI
2. Approve - unit sold -> in_stock, sale linkage cleared, return movement (+1),
   customer return history entry
   Reject - request closed, nothing else changes

Approval does NOT reverse the customer's total_orders / total_spent. A
return is recorded as its own event rather than an order cancellation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import current_app

from ..errors import (
    DuplicatePendingReturnError,
    InventoryUnitNotFoundError,
    PayloadError,
    ReturnAlreadyProcessedError,
    ReturnRequestNotFoundError,
    SalesOrderNotFoundError,
    UnitStatusConflictError,
)
from ..extensions import db
from ..models import Customer, InventoryUnit, ReturnRequest, SalesOrder, SalesOrderLine
from imeipos.time_utils import to_utc_z, utcnow
from . import customer_service
from . import unit_lifecycle as lifecycle
from .concurrency import lock_for_update, run_atomic
from .imei_service import normalize_imei
from .inventory_service import apply_transition
from .stock_ledger_service import DOCUMENT_RETURN, MOVEMENT_RETURN


# =============================================================================
# RETURN STATUS CONSTANTS
# =============================================================================

RETURN_STATUS_PENDING = "pending"
RETURN_STATUS_APPROVED = "approved"
RETURN_STATUS_REJECTED = "rejected"
VALID_RETURN_STATUSES = {RETURN_STATUS_PENDING, RETURN_STATUS_APPROVED, RETURN_STATUS_REJECTED}

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"


@dataclass
class SoldUnitView:
    """Everything the counter needs to confirm a return with the customer."""
    unit: InventoryUnit
    order: SalesOrder
    line: Optional[SalesOrderLine]
    customer: Optional[Customer]
    customer_name: str
    customer_phone: Optional[str]

    @property
    def sale_price(self) -> int:
        if self.line is not None:
            return self.line.sale_price
        return self.unit.actual_sale_price or 0

    def to_dict(self) -> dict:
        return {
            "inventory_unit_id": self.unit.id,
            "imei": self.unit.imei,
            "product_id": self.unit.product_id,
            "product_name": self.unit.product_name,
            "variant_id": self.unit.variant_id,
            "variant_sku": self.unit.variant_sku,
            "color_name": self.unit.color_name,
            "storage_capacity": self.unit.storage_capacity,
            "sales_order_id": self.order.id,
            "order_number": self.order.order_number,
            "sale_date": to_utc_z(self.unit.sale_date),
            "sale_price": self.sale_price,
            "customer_id": self.customer.id if self.customer else None,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
        }


@dataclass
class ReturnApprovalSnapshot:
    request: ReturnRequest
    unit: InventoryUnit


# =============================================================================
# LOOKUP
# =============================================================================

def _resolve_sold_unit(imei: str, *, for_update: bool = False) -> SoldUnitView:
    query = db.session.query(InventoryUnit).filter(InventoryUnit.imei == imei)
    if for_update:
        query = lock_for_update(query)
    unit = query.first()
    if unit is None:
        raise InventoryUnitNotFoundError(f"No inventory unit with IMEI {imei}", {"imei": imei})
    if unit.status != lifecycle.STATUS_SOLD or unit.sales_order_id is None:
        raise UnitStatusConflictError(
            f"IMEI {imei} is not sold (status: {unit.status})",
            {"imei": imei, "status": unit.status},
        )

    order = db.session.get(SalesOrder, unit.sales_order_id)
    if order is None:
        raise SalesOrderNotFoundError(
            f"Sales order {unit.sales_order_id} for IMEI {imei} not found",
            {"imei": imei, "sales_order_id": unit.sales_order_id},
        )
    line = (
        db.session.query(SalesOrderLine)
        .filter(SalesOrderLine.sales_order_id == order.id, SalesOrderLine.imei == imei)
        .first()
    )

    customer = customer_service.get_customer(order.customer_id) if order.customer_id else None
    if customer is not None:
        name, phone = customer.name, customer.phone
    else:
        name = order.customer_name or customer_service.WALK_IN_DISPLAY_NAME
        phone = order.customer_phone

    return SoldUnitView(
        unit=unit, order=order, line=line, customer=customer,
        customer_name=name, customer_phone=phone,
    )


def find_sold_unit_by_imei(imei: str) -> SoldUnitView:
    """Read-only lookup of a sold unit and the sale it belongs to."""
    return _resolve_sold_unit(normalize_imei(imei))


# =============================================================================
# CREATE
# =============================================================================

def create_return_request(imei: str, *, reason: Optional[str], actor_id: Optional[str]) -> ReturnRequest:
    """
    Open a pending return request for a sold IMEI.

    The duplicate-pending check and the sold-status check run inside the same
    atomic unit as the insert; the partial unique index on pending IMEIs
    turns a racing second insert into a retry that then fails the check.
    """
    imei = normalize_imei(imei)
    if not imei:
        raise PayloadError("imei is required", {"field": "imei"})

    def _op() -> ReturnRequest:
        pending = (
            db.session.query(ReturnRequest.id)
            .filter(ReturnRequest.imei == imei, ReturnRequest.status == RETURN_STATUS_PENDING)
            .first()
        )
        if pending is not None:
            raise DuplicatePendingReturnError(
                f"A pending return request already exists for IMEI {imei}",
                {"imei": imei, "return_request_id": pending[0]},
            )
        view = _resolve_sold_unit(imei, for_update=True)

        request = ReturnRequest(
            order_id=view.order.id,
            order_number=view.order.order_number,
            inventory_unit_id=view.unit.id,
            imei=imei,
            product_id=view.unit.product_id,
            product_name=view.line.product_name if view.line else view.unit.product_name,
            variant_id=view.unit.variant_id,
            variant_sku=view.line.variant_sku if view.line else view.unit.variant_sku,
            sale_price=view.sale_price,
            customer_id=view.customer.id if view.customer else None,
            customer_name=view.customer_name,
            customer_phone=view.customer_phone,
            status=RETURN_STATUS_PENDING,
            reason=reason,
            requested_at=utcnow(),
            requested_by=actor_id,
        )
        db.session.add(request)
        db.session.flush()
        return request

    request = run_atomic(_op, name="create return request")
    current_app.logger.info(
        "Return request %s opened for IMEI %s on %s by %s",
        request.id, imei, request.order_number, actor_id,
    )
    return request


# =============================================================================
# PROCESS
# =============================================================================

def _load_pending_request(request_id: int) -> ReturnRequest:
    request = lock_for_update(
        db.session.query(ReturnRequest).filter(ReturnRequest.id == request_id)
    ).first()
    if request is None:
        raise ReturnRequestNotFoundError(
            f"Return request {request_id} not found", {"return_request_id": request_id}
        )
    if request.status != RETURN_STATUS_PENDING:
        raise ReturnAlreadyProcessedError(
            f"Return request {request_id} is already {request.status}",
            {"return_request_id": request_id, "status": request.status},
        )
    return request


def _approval_read_phase(request_id: int) -> ReturnApprovalSnapshot:
    request = _load_pending_request(request_id)
    unit = lock_for_update(
        db.session.query(InventoryUnit).filter(InventoryUnit.id == request.inventory_unit_id)
    ).first()
    if unit is None:
        raise InventoryUnitNotFoundError(
            f"Inventory unit {request.inventory_unit_id} not found",
            {"inventory_unit_id": request.inventory_unit_id, "imei": request.imei},
        )
    if unit.status != lifecycle.STATUS_SOLD:
        raise UnitStatusConflictError(
            f"IMEI {unit.imei} is no longer sold (status: {unit.status})",
            {"imei": unit.imei, "status": unit.status, "return_request_id": request.id},
        )
    return ReturnApprovalSnapshot(request=request, unit=unit)


def approve_return_request(request_id: int, *, actor_id: Optional[str], note: Optional[str] = None) -> ReturnRequest:
    """Approve a pending request and put the unit back into stock."""
    def _op() -> ReturnRequest:
        snapshot = _approval_read_phase(request_id)
        request, unit = snapshot.request, snapshot.unit
        now = utcnow()

        unit.sales_order_id = None
        unit.sale_date = None
        unit.actual_sale_price = None
        unit.warranty_start_date = None
        apply_transition(
            unit,
            to_status=lifecycle.STATUS_IN_STOCK,
            movement_type=MOVEMENT_RETURN,
            actor_id=actor_id,
            to_location=current_app.config.get("DEFAULT_LOCATION", "Main Store"),
            related_order_id=request.order_id,
            related_document_type=DOCUMENT_RETURN,
            reason=request.reason or "Customer return",
            notes=note,
            when=now,
        )

        if request.customer_id is not None:
            customer_service.record_return_history(
                customer_id=request.customer_id,
                return_request_id=request.id,
                returned_at=now,
                order_number=request.order_number,
                product_name=request.product_name,
                imei=request.imei,
                amount=request.sale_price,
            )

        request.status = RETURN_STATUS_APPROVED
        request.processed_at = now
        request.processed_by = actor_id
        request.processing_note = note
        db.session.flush()
        return request

    request = run_atomic(_op, name="approve return")
    current_app.logger.info("Return request %s approved by %s (IMEI %s)", request.id, actor_id, request.imei)
    return request


def reject_return_request(request_id: int, *, actor_id: Optional[str], note: Optional[str] = None) -> ReturnRequest:
    """Close a pending request without touching inventory or money."""
    def _op() -> ReturnRequest:
        request = _load_pending_request(request_id)
        request.status = RETURN_STATUS_REJECTED
        request.processed_at = utcnow()
        request.processed_by = actor_id
        request.processing_note = note
        db.session.flush()
        return request

    request = run_atomic(_op, name="reject return")
    current_app.logger.info("Return request %s rejected by %s", request.id, actor_id)
    return request


def process_return_request(
    request_id: int,
    action: str,
    *,
    actor_id: Optional[str],
    note: Optional[str] = None,
) -> ReturnRequest:
    if action == ACTION_APPROVE:
        return approve_return_request(request_id, actor_id=actor_id, note=note)
    if action == ACTION_REJECT:
        return reject_return_request(request_id, actor_id=actor_id, note=note)
    raise PayloadError(
        f"Unknown action '{action}'", {"field": "action", "allowed": [ACTION_APPROVE, ACTION_REJECT]}
    )


# =============================================================================
# QUERIES
# =============================================================================

def get_return_request(request_id: int) -> ReturnRequest:
    request = db.session.get(ReturnRequest, request_id)
    if request is None:
        raise ReturnRequestNotFoundError(
            f"Return request {request_id} not found", {"return_request_id": request_id}
        )
    return request


def list_return_requests(status: Optional[str] = None, limit: int = 100) -> list[ReturnRequest]:
    query = db.session.query(ReturnRequest)
    if status:
        if status not in VALID_RETURN_STATUSES:
            raise PayloadError(
                f"Invalid status '{status}'",
                {"field": "status", "allowed": sorted(VALID_RETURN_STATUSES)},
            )
        query = query.filter(ReturnRequest.status == status)
    return query.order_by(ReturnRequest.requested_at.desc(), ReturnRequest.id.desc()).limit(limit).all()
