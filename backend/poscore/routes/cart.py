# Overview: Flask API routes for the cashier's cart session and checkout.

# backend/poscore/routes/cart.py
"""
Cart routes (cashier only).

Refusals that only need reporting (out of stock, over stock, empty cart
on hold) answer 200 with applied=false and a reason; the cart is unchanged.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import inventory_service, sales_service
from ..services.auth_service import ROLE_CASHIER
from ..services.cart_service import carts
from ..services.errors import PosError, ValidationError
from ..validation import coerce_int
from ..decorators import require_auth, require_role, error_response


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def _change_response(change, session):
    return jsonify({
        "applied": change.applied,
        "reason": change.reason,
        "cart": session.to_dict(),
    }), 200


@cart_bp.get("")
@require_auth
@require_role(ROLE_CASHIER)
def get_cart():
    return jsonify({"cart": carts.get(g.operator.id).to_dict()}), 200


@cart_bp.post("/lines")
@require_auth
@require_role(ROLE_CASHIER)
def add_line_route():
    """
    Add one unit of a product (by product_id or barcode).

    Adding a product already in the cart increments its quantity.
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("product_id") is not None:
            product = inventory_service.get_product(coerce_int(data["product_id"], "product_id"))
        elif data.get("barcode"):
            product = inventory_service.find_by_barcode(data["barcode"])
        else:
            return jsonify({"error": "product_id or barcode required"}), 400

        session = carts.get(g.operator.id)
        return _change_response(session.add_line(product), session)

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add cart line")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.patch("/lines/<int:product_id>")
@require_auth
@require_role(ROLE_CASHIER)
def change_quantity_route(product_id: int):
    """Body: {"delta": int}. A resulting quantity <= 0 removes the line."""
    try:
        data = request.get_json(silent=True) or {}
        if "delta" not in data:
            return jsonify({"error": "delta required"}), 400
        delta = coerce_int(data["delta"], "delta")

        session = carts.get(g.operator.id)
        return _change_response(session.set_quantity(product_id, delta), session)

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change cart quantity")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/lines/<int:product_id>")
@require_auth
@require_role(ROLE_CASHIER)
def remove_line_route(product_id: int):
    session = carts.get(g.operator.id)
    return _change_response(session.remove_line(product_id), session)


@cart_bp.post("/hold")
@require_auth
@require_role(ROLE_CASHIER)
def hold_route():
    session = carts.get(g.operator.id)
    return _change_response(session.hold(), session)


@cart_bp.post("/held/<int:index>/resume")
@require_auth
@require_role(ROLE_CASHIER)
def resume_route(index: int):
    """
    Move held cart #index back to the active slot.

    The active cart must be empty: hold or clear it first, otherwise
    this returns 400 cart_error and the held list is unchanged.
    """
    try:
        session = carts.get(g.operator.id)
        session.resume(index)
        return jsonify({"applied": True, "reason": None, "cart": session.to_dict()}), 200
    except PosError as e:
        return error_response(e)


@cart_bp.post("/clear")
@require_auth
@require_role(ROLE_CASHIER)
def clear_route():
    session = carts.get(g.operator.id)
    session.clear()
    return jsonify({"cart": session.to_dict()}), 200


@cart_bp.post("/checkout")
@require_auth
@require_role(ROLE_CASHIER)
def checkout_route():
    """
    Commit the active cart as a sale.

    Body: {"payment_method": "cash" | "card"} (default cash).
    On success the active cart is cleared; on any failure it is kept
    so the cashier can correct and retry.
    """
    try:
        data = request.get_json(silent=True) or {}
        session = carts.get(g.operator.id)
        cart = session.checkout_copy()
        if cart.is_empty:
            raise ValidationError("Cannot commit an empty cart")

        sale = sales_service.commit_sale(cart, g.operator, data.get("payment_method") or "cash")
        session.clear()

        return jsonify({"sale": sale.to_dict(), "cart": session.to_dict()}), 201

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to commit sale")
        return jsonify({"error": "Internal server error"}), 500
