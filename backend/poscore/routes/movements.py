# Overview: Flask API routes for stock movements; parses input and returns JSON responses.

# backend/poscore/routes/movements.py
"""
Stock movement routes.

- POST is checker-only (the reconciler enforces it too)
- History is readable by checkers and owners
- Repair re-applies movements whose stock update never landed (owner)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import movement_service
from ..services.auth_service import ROLE_CHECKER, ROLE_OWNER
from ..services.errors import PosError
from ..validation import coerce_int
from ..decorators import require_auth, require_role, error_response


movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")


@movements_bp.post("")
@require_auth
@require_role(ROLE_CHECKER)
def create_movement_route():
    """
    Record and apply a stock movement.

    Body: product_id, kind (in | out | damaged | returned), quantity, reason.
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("product_id") is None:
            return jsonify({"error": "product_id required"}), 400

        movement = movement_service.apply_movement(
            product_id=coerce_int(data["product_id"], "product_id"),
            kind=data.get("kind"),
            quantity=data.get("quantity"),
            operator=g.operator,
            reason=data.get("reason"),
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to apply stock movement")
        return jsonify({"error": "Internal server error"}), 500


@movements_bp.get("")
@require_auth
@require_role(ROLE_CHECKER, ROLE_OWNER)
def list_movements_route():
    try:
        limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
        offset = max(request.args.get("offset", 0, type=int), 0)
        movements = movement_service.list_movements(
            product_id=request.args.get("product_id", type=int),
            limit=limit,
            offset=offset,
        )
        return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200

    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500


@movements_bp.get("/<int:movement_id>")
@require_auth
@require_role(ROLE_CHECKER, ROLE_OWNER)
def get_movement_route(movement_id: int):
    try:
        return jsonify({"movement": movement_service.get_movement(movement_id).to_dict()}), 200
    except PosError as e:
        return error_response(e)


@movements_bp.post("/repair")
@require_auth
@require_role(ROLE_OWNER)
def repair_movements_route():
    try:
        repaired = movement_service.repair_unapplied_movements()
        return jsonify({"repaired": repaired}), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to repair stock movements")
        return jsonify({"error": "Internal server error"}), 500
