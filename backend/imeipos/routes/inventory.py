# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/imeipos/routes/inventory.py
"""
Inventory API Routes

- Purchase-order intake (all-or-nothing, IMEI-level)
- IMEI preflight for the intake screen
- Unit lookups, movement history, sellable stock
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CoreError, PayloadError
from ..services import imei_service, intake_service, inventory_service, stock_ledger_service
from ..services.intake_service import IntakeLine, IntakeRequest
from ..decorators import require_actor
from ..validation import (
    json_object,
    optional_datetime,
    optional_int,
    optional_str,
    require_int,
    require_list,
    require_str,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _parse_intake(data: dict) -> IntakeRequest:
    lines = []
    for index, raw in enumerate(require_list(data, "lines")):
        if not isinstance(raw, dict):
            raise PayloadError("Each line must be an object", {"line": index})
        imeis = require_list(raw, "imeis")
        lines.append(IntakeLine(
            product_id=require_int(raw, "product_id"),
            variant_id=require_int(raw, "variant_id"),
            unit_cost=require_int(raw, "unit_cost"),
            imeis=[str(v) for v in imeis],
            location=optional_str(raw, "location"),
            condition=optional_str(raw, "condition"),
            notes=optional_str(raw, "notes"),
        ))
    return IntakeRequest(
        supplier_name=require_str(data, "supplier_name"),
        lines=lines,
        notes=optional_str(data, "notes"),
        order_date=optional_datetime(data, "order_date"),
        expected_delivery_date=optional_datetime(data, "expected_delivery_date"),
        warranty_period_months=optional_int(data, "warranty_period_months"),
    )


@inventory_bp.post("/intake")
@require_actor
def intake_route():
    """
    Receive a purchase order.

    Request body:
    {
        "supplier_name": "FPT Trading",
        "notes": "...",                         (optional)
        "expected_delivery_date": "2026-10-24", (optional, default order date + 7 days)
        "confirmed_reintake_imeis": ["..."],    (optional)
        "lines": [
            {"product_id": 1, "variant_id": 2, "unit_cost": 30000000,
             "imeis": ["123456789012345"], "location": "Main Store", "condition": "new"}
        ]
    }

    Returns:
        201: Purchase order with lines
        400: Format error (nothing written)
        404: Product or variant not in catalog
        409: IMEI exists / re-intake confirmation required
    """
    try:
        data = json_object(request.get_json(silent=True))
        intake = _parse_intake(data)
        confirmed = data.get("confirmed_reintake_imeis") or []
        if not isinstance(confirmed, list):
            raise PayloadError("confirmed_reintake_imeis must be a list", {"field": "confirmed_reintake_imeis"})

        po = intake_service.create_purchase_order_with_intake(
            intake, actor_id=g.actor_id, confirmed_imeis=confirmed
        )
        return jsonify({"purchase_order": po.to_dict(include_lines=True)}), 201

    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to receive purchase order")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/imeis/validate")
def validate_imeis_route():
    """
    Pre-flight classification for a prospective intake batch.

    Request body: {"imeis": ["123456789012345", ...]}
    Returns one entry per input IMEI, in order.
    """
    try:
        data = json_object(request.get_json(silent=True))
        imeis = require_list(data, "imeis")
        results = imei_service.preflight_imeis(imeis)
        summary = {}
        for r in results:
            summary[r.classification] = summary.get(r.classification, 0) + 1
        return jsonify({"results": [r.to_dict() for r in results], "summary": summary}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to validate IMEIs")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/units")
def list_units_route():
    try:
        status = request.args.get("status") or None
        variant_id = request.args.get("variant_id", type=int)
        limit = min(request.args.get("limit", default=200, type=int), 1000)
        try:
            units = inventory_service.list_units(status=status, variant_id=variant_id, limit=limit)
        except ValueError as e:
            raise PayloadError(str(e), {"field": "status"})
        return jsonify({"units": [u.to_dict() for u in units]}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list inventory units")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/units/<int:unit_id>")
def get_unit_route(unit_id: int):
    try:
        unit = inventory_service.get_unit(unit_id)
        return jsonify({"unit": unit.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load inventory unit")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/units/by-imei/<imei>")
def get_unit_by_imei_route(imei: str):
    try:
        unit = inventory_service.get_unit_by_imei(imei_service.normalize_imei(imei))
        return jsonify({"unit": unit.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to look up IMEI")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/units/<int:unit_id>/movements")
def unit_movements_route(unit_id: int):
    """Stock movement history for one unit, newest first."""
    try:
        inventory_service.get_unit(unit_id)
        limit = request.args.get("limit", type=int)
        movements = stock_ledger_service.get_movement_history(unit_id, limit=limit)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load movement history")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/ledger/<imei>")
def imei_ledger_route(imei: str):
    """Full ledger for one IMEI with its running presence and reconciliation status."""
    try:
        imei = imei_service.normalize_imei(imei)
        movements = stock_ledger_service.get_imei_history(imei)
        unit = inventory_service.find_unit_by_imei(imei)
        discrepancies = stock_ledger_service.reconcile([imei]) if unit else []
        return jsonify({
            "imei": imei,
            "status": unit.status if unit else None,
            "ledger_presence": sum(m.quantity_change for m in movements),
            "reconciled": not discrepancies,
            "movements": [m.to_dict() for m in movements],
        }), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load IMEI ledger")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/available")
def available_route():
    """Sellable stock grouped by product and variant, oldest unit first."""
    try:
        groups = inventory_service.list_available_for_sale(
            product_id=request.args.get("product_id", type=int),
            variant_id=request.args.get("variant_id", type=int),
        )
        return jsonify({"products": groups}), 200
    except Exception:
        current_app.logger.exception("Failed to list available stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/purchase-orders")
def list_purchase_orders_route():
    try:
        limit = min(request.args.get("limit", default=50, type=int), 500)
        orders = intake_service.list_recent_purchase_orders(limit=limit)
        return jsonify({"purchase_orders": [po.to_dict() for po in orders]}), 200
    except Exception:
        current_app.logger.exception("Failed to list purchase orders")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/purchase-orders/<int:purchase_order_id>")
def get_purchase_order_route(purchase_order_id: int):
    try:
        return jsonify({"purchase_order": intake_service.get_purchase_order_with_lines(purchase_order_id)}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load purchase order")
        return jsonify({"error": "Internal server error"}), 500
