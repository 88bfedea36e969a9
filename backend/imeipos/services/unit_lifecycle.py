# Overview: Inventory unit status state machine; pure rules, no database work.

"""
Inventory Unit Lifecycle

================================================================================
STATE MACHINE (wired transitions):
    (none)   -> in_stock     intake
    in_stock -> sold         sale
    sold     -> in_stock     approved return

Declared but not wired: reserved, returned, returned_available, defective,
under_repair, warranty_out, warranty_in. Any transition into or out of these
raises TransitionNotWiredError until a workflow owns it.

RULES:
1. Every transition is paired with exactly one stock movement in the same
   atomic unit (see inventory_service.apply_transition).
2. A unit that is in_stock or sold can never be received again.
3. A unit in returned / returned_available can be received again only with
   explicit operator confirmation; the existing record is reused.
================================================================================
"""

from __future__ import annotations

from typing import Literal, Optional

from ..errors import TransitionNotWiredError, UnitStatusConflictError


STATUS_IN_STOCK = "in_stock"
STATUS_SOLD = "sold"
STATUS_RESERVED = "reserved"
STATUS_RETURNED = "returned"
STATUS_RETURNED_AVAILABLE = "returned_available"
STATUS_DEFECTIVE = "defective"
STATUS_UNDER_REPAIR = "under_repair"
STATUS_WARRANTY_OUT = "warranty_out"
STATUS_WARRANTY_IN = "warranty_in"

WIRED_STATUSES = frozenset({STATUS_IN_STOCK, STATUS_SOLD})
UNWIRED_STATUSES = frozenset({
    STATUS_RESERVED,
    STATUS_RETURNED,
    STATUS_RETURNED_AVAILABLE,
    STATUS_DEFECTIVE,
    STATUS_UNDER_REPAIR,
    STATUS_WARRANTY_OUT,
    STATUS_WARRANTY_IN,
})
VALID_STATUSES = WIRED_STATUSES | UNWIRED_STATUSES

ALLOWED_TRANSITIONS = frozenset({
    (None, STATUS_IN_STOCK),
    (STATUS_IN_STOCK, STATUS_SOLD),
    (STATUS_SOLD, STATUS_IN_STOCK),
})

REINTAKE_NEW = "new"
REINTAKE_BLOCKING = "blocking"
REINTAKE_REQUIRES_CONFIRMATION = "requires_confirmation"
ReintakeClass = Literal["new", "blocking", "requires_confirmation"]

_REINTAKE_CONFIRMABLE = frozenset({STATUS_RETURNED, STATUS_RETURNED_AVAILABLE})


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ValueError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def can_transition(from_status: Optional[str], to_status: str) -> bool:
    return (from_status, to_status) in ALLOWED_TRANSITIONS


def require_transition(from_status: Optional[str], to_status: str, *, imei: str | None = None) -> None:
    """
    Raise unless from_status -> to_status is a wired transition.

    TransitionNotWiredError when either side is a declared-but-unwired status,
    UnitStatusConflictError for any other illegal move.
    """
    if can_transition(from_status, to_status):
        return

    details = {"imei": imei, "from_status": from_status, "to_status": to_status}
    if from_status in UNWIRED_STATUSES or to_status in UNWIRED_STATUSES:
        raise TransitionNotWiredError(
            f"Transition {from_status or '(none)'} -> {to_status} has no workflow yet",
            details=details,
        )
    raise UnitStatusConflictError(
        f"Unit {imei or '(unknown)'} cannot move from {from_status or '(none)'} to {to_status}",
        details=details,
    )


def classify_reintake(existing_status: Optional[str]) -> ReintakeClass:
    """Re-intake policy for an IMEI whose unit record has existing_status (None: no record)."""
    if existing_status is None:
        return REINTAKE_NEW
    if existing_status in _REINTAKE_CONFIRMABLE:
        return REINTAKE_REQUIRES_CONFIRMATION
    return REINTAKE_BLOCKING
