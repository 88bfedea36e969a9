# Overview: ORM-level guards for append-only and write-once data.

"""
SQLAlchemy event listeners that reject illegal writes before any SQL is sent.

Protected:
- StockMovement: always immutable (no UPDATE, no DELETE).
- CustomerReturnHistory: always immutable.
- InventoryUnit: imei and entry_price are write-once; rows are never deleted.

Raw SQL bypasses these listeners; the service layer never issues raw DML
against these tables.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import attributes


class ImmutabilityViolationError(RuntimeError):
    """An attempt was made to modify or delete a protected record."""

    def __init__(self, entity: str, entity_id, reason: str):
        super().__init__(f"{entity} {entity_id}: {reason}")
        self.entity = entity
        self.entity_id = entity_id
        self.reason = reason


def _reject_update(mapper, connection, target):
    raise ImmutabilityViolationError(type(target).__name__, target.id, "append-only record cannot be updated")


def _reject_delete(mapper, connection, target):
    raise ImmutabilityViolationError(type(target).__name__, target.id, "append-only record cannot be deleted")


def _check_unit_write_once(mapper, connection, target):
    for field in ("imei", "entry_price"):
        history = attributes.get_history(target, field)
        if history.deleted and history.added and history.deleted[0] != history.added[0]:
            raise ImmutabilityViolationError(
                "InventoryUnit", target.id, f"{field} is write-once"
            )


def _reject_unit_delete(mapper, connection, target):
    raise ImmutabilityViolationError("InventoryUnit", target.id, "inventory units are never deleted")


def register_immutability_listeners():
    """
    Register all immutability listeners. Safe to call more than once
    (the test suite builds several apps in one process).
    """
    from .models import StockMovement, CustomerReturnHistory, InventoryUnit

    listeners = [
        (StockMovement, "before_update", _reject_update),
        (StockMovement, "before_delete", _reject_delete),
        (CustomerReturnHistory, "before_update", _reject_update),
        (CustomerReturnHistory, "before_delete", _reject_delete),
        (InventoryUnit, "before_update", _check_unit_write_once),
        (InventoryUnit, "before_delete", _reject_unit_delete),
    ]
    for model, identifier, fn in listeners:
        if not event.contains(model, identifier, fn):
            event.listen(model, identifier, fn)
