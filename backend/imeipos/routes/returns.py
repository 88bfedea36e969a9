# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/imeipos/routes/returns.py
"""
Return Processing API Routes

DESIGN:
- Look up a sold IMEI and open a pending return request
- Approve: unit goes back into stock, return movement recorded
- Reject: request closed, nothing else changes
- All mutating operations are attributed to the X-Actor-Id caller
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CoreError
from ..services import customer_service, return_service
from ..decorators import require_actor
from ..validation import json_object, optional_str, require_str


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


# =============================================================================
# LOOKUP / CREATION
# =============================================================================

@returns_bp.get("/lookup/<imei>")
def lookup_sold_unit_route(imei: str):
    """Sold unit, its order, sale price and customer for the return screen."""
    try:
        view = return_service.find_sold_unit_by_imei(imei)
        return jsonify({"sold_unit": view.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to look up sold unit")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/")
@require_actor
def create_return_route():
    """
    Open a pending return request.

    Request body:
    {
        "imei": "123456789012345",
        "reason": "Screen defect"   (optional)
    }

    Returns:
        201: Return request (pending)
        404: IMEI unknown
        409: Unit not sold, or a pending request already exists
    """
    try:
        data = json_object(request.get_json(silent=True))
        return_request = return_service.create_return_request(
            require_str(data, "imei"),
            reason=optional_str(data, "reason"),
            actor_id=g.actor_id,
        )
        return jsonify({"return_request": return_request.to_dict()}), 201

    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create return request")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# APPROVAL WORKFLOW
# =============================================================================

@returns_bp.post("/<int:request_id>/approve")
@require_actor
def approve_return_route(request_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        return_request = return_service.approve_return_request(
            request_id, actor_id=g.actor_id, note=optional_str(data, "note")
        )
        return jsonify({"return_request": return_request.to_dict()}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to approve return request")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/<int:request_id>/reject")
@require_actor
def reject_return_route(request_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        return_request = return_service.reject_return_request(
            request_id, actor_id=g.actor_id, note=optional_str(data, "note")
        )
        return jsonify({"return_request": return_request.to_dict()}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to reject return request")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/<int:request_id>/process")
@require_actor
def process_return_route(request_id: int):
    """Body: {"action": "approve" | "reject", "note": "..."}"""
    try:
        data = json_object(request.get_json(silent=True))
        return_request = return_service.process_return_request(
            request_id,
            require_str(data, "action"),
            actor_id=g.actor_id,
            note=optional_str(data, "note"),
        )
        return jsonify({"return_request": return_request.to_dict()}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to process return request")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@returns_bp.get("/")
def list_returns_route():
    try:
        requests_ = return_service.list_return_requests(status=request.args.get("status") or None)
        return jsonify({"return_requests": [r.to_dict() for r in requests_]}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list return requests")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/<int:request_id>")
def get_return_route(request_id: int):
    try:
        return jsonify({"return_request": return_service.get_return_request(request_id).to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load return request")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/customer/<int:customer_id>/history")
def customer_return_history_route(customer_id: int):
    try:
        entries = customer_service.list_return_history(customer_id)
        return jsonify({"return_history": [e.to_dict() for e in entries]}), 200
    except Exception:
        current_app.logger.exception("Failed to load customer return history")
        return jsonify({"error": "Internal server error"}), 500
