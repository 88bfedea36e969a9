# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/imeipos/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CoreError, PayloadError
from ..services import sales_service
from ..services.sales_service import CartItem, CustomerInfo, SaleInput
from ..decorators import require_actor
from ..validation import json_object, optional_int, optional_str, require_int, require_list, require_str


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_sale(data: dict) -> SaleInput:
    items = []
    for index, raw in enumerate(require_list(data, "items")):
        if not isinstance(raw, dict):
            raise PayloadError("Each item must be an object", {"line": index})
        items.append(CartItem(
            inventory_unit_id=require_int(raw, "inventory_unit_id"),
            imei=str(raw.get("imei") or ""),
        ))

    customer_info = None
    raw_customer = data.get("customer_info")
    if raw_customer is not None:
        if not isinstance(raw_customer, dict):
            raise PayloadError("customer_info must be an object", {"field": "customer_info"})
        customer_info = CustomerInfo(
            name=optional_str(raw_customer, "name"),
            phone=optional_str(raw_customer, "phone"),
            email=optional_str(raw_customer, "email"),
            address=optional_str(raw_customer, "address"),
        )

    return SaleInput(
        items=items,
        payment_method=require_str(data, "payment_method"),
        tax_rate_bps=optional_int(data, "tax_rate_bps", 0),
        discount_amount=optional_int(data, "discount_amount", 0),
        shipping_amount=optional_int(data, "shipping_amount", 0),
        customer_id=optional_int(data, "customer_id"),
        customer_info=customer_info,
        amount_received=optional_int(data, "amount_received"),
        sales_channel=optional_str(data, "sales_channel", sales_service.DEFAULT_SALES_CHANNEL),
        notes=optional_str(data, "notes"),
    )


@sales_bp.post("/")
@require_actor
def create_sale_route():
    """
    Complete a sale for a cart of IMEI-tracked units.

    Request body:
    {
        "items": [{"inventory_unit_id": 1, "imei": "123456789012345"}],
        "payment_method": "cash",
        "tax_rate_bps": 1000,          (optional, 1000 = 10%)
        "discount_amount": 0,          (optional)
        "shipping_amount": 0,          (optional)
        "customer_id": 3,              (optional)
        "customer_info": {"name": "...", "phone": "..."},  (optional, walk-in)
        "amount_received": 40000000    (optional, cash)
    }

    Returns:
        201: Completed order with lines
        400: Format / amount error
        404: Unit or customer not found
        409: Unit not in stock or IMEI mismatch (whole cart rejected)
        503: Concurrent change, retry
    """
    try:
        data = json_object(request.get_json(silent=True))
        sale = _parse_sale(data)
        order = sales_service.create_sale_order(sale, actor_id=g.actor_id, staff_name=g.actor_name)
        return jsonify({"order": order.to_dict(include_lines=True)}), 201

    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:order_id>")
def get_sale_route(order_id: int):
    try:
        return jsonify({"order": sales_service.get_sales_order_with_lines(order_id)}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load sales order")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/customer/<int:customer_id>")
def list_customer_sales_route(customer_id: int):
    try:
        orders = sales_service.list_sales_orders_for_customer(customer_id)
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list customer orders")
        return jsonify({"error": "Internal server error"}), 500
