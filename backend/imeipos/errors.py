# Overview: Domain error taxonomy shared by services and routes.

"""
Error classes raised by the inventory core.

Every error carries a human-readable message, a stable machine code, and a
details dict. Routes translate them to JSON with the class' http_status.

Families:
- Format (400): rejected before any store I/O.
- Conflict (409): the store holds a state that forbids the operation.
- Referential (404): a referenced record does not exist.
- Transient (503): store contention outlasted the retry budget; callers may retry.
"""

from __future__ import annotations


class CoreError(Exception):
    """Base for every expected, user-facing failure."""

    http_status = 400
    code = "CORE_ERROR"
    retryable = False

    def __init__(self, message: str, details: dict | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code:
            self.code = code

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code, "details": self.details}
        if self.retryable:
            payload["retryable"] = True
        return payload


# =============================================================================
# FORMAT (400)
# =============================================================================

class FormatError(CoreError):
    http_status = 400
    code = "FORMAT_ERROR"


class ImeiFormatError(FormatError):
    code = "IMEI_FORMAT"


class DuplicateImeiInBatchError(FormatError):
    code = "DUPLICATE_IMEI_IN_BATCH"


class InvalidAmountError(FormatError):
    code = "INVALID_AMOUNT"


class PayloadError(FormatError):
    """Malformed request body (missing field, wrong type)."""
    code = "INVALID_PAYLOAD"


# =============================================================================
# CONFLICT (409)
# =============================================================================

class ConflictError(CoreError):
    http_status = 409
    code = "CONFLICT"


class ImeiAlreadyExistsError(ConflictError):
    code = "IMEI_ALREADY_EXISTS"


class ReintakeConfirmationRequired(ConflictError):
    """
    Raised when one or more IMEIs belong to units that left stock through a
    return path and can only be received again with explicit confirmation.
    """
    code = "REINTAKE_CONFIRMATION_REQUIRED"

    def __init__(self, imeis: list[str]):
        super().__init__(
            f"Re-intake confirmation required for {len(imeis)} IMEI(s)",
            details={"imeis": list(imeis)},
        )
        self.imeis = list(imeis)


class UnitStatusConflictError(ConflictError):
    code = "UNIT_STATUS_CONFLICT"


class TransitionNotWiredError(ConflictError):
    code = "TRANSITION_NOT_WIRED"


class ImeiMismatchError(ConflictError):
    code = "IMEI_MISMATCH"


class DuplicatePendingReturnError(ConflictError):
    code = "DUPLICATE_PENDING_RETURN"


class ReturnAlreadyProcessedError(ConflictError):
    code = "RETURN_ALREADY_PROCESSED"


# =============================================================================
# REFERENTIAL (404)
# =============================================================================

class ReferentialError(CoreError):
    http_status = 404
    code = "NOT_FOUND"


class CatalogEntryNotFoundError(ReferentialError):
    code = "CATALOG_ENTRY_NOT_FOUND"


class InventoryUnitNotFoundError(ReferentialError):
    code = "INVENTORY_UNIT_NOT_FOUND"


class SalesOrderNotFoundError(ReferentialError):
    code = "SALES_ORDER_NOT_FOUND"


class PurchaseOrderNotFoundError(ReferentialError):
    code = "PURCHASE_ORDER_NOT_FOUND"


class CustomerNotFoundError(ReferentialError):
    code = "CUSTOMER_NOT_FOUND"


class ReturnRequestNotFoundError(ReferentialError):
    code = "RETURN_REQUEST_NOT_FOUND"


# =============================================================================
# TRANSIENT (503)
# =============================================================================

class StoreConflictError(CoreError):
    """Concurrent modification or lock timeout survived every retry."""
    http_status = 503
    code = "STORE_CONFLICT"
    retryable = True
