# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/poscore/routes/products.py
"""
Product catalogue routes.

SECURITY: All routes require authentication.
- Read operations are open to every role
- Write operations are owner-only; stock is never editable here
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..services import inventory_service
from ..services.auth_service import ROLE_OWNER
from ..services.errors import PosError
from ..decorators import require_auth, require_role, error_response


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List active products.

    Query params:
    - search: str (optional) - name or barcode substring
    - category: str (optional)
    - include_inactive: bool (owner only)
    """
    try:
        include_inactive = (
            request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
            and g.operator.role == ROLE_OWNER
        )
        products = inventory_service.list_products(
            search=request.args.get("search"),
            category=request.args.get("category"),
            include_inactive=include_inactive,
        )
        return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200

    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/low-stock")
@require_auth
def list_low_stock():
    """Products with 0 < current_stock <= min_stock."""
    products = inventory_service.list_low_stock_products()
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/out-of-stock")
@require_auth
def list_out_of_stock():
    products = inventory_service.list_out_of_stock_products()
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/barcode/<string:barcode>")
@require_auth
def get_by_barcode(barcode: str):
    try:
        product = inventory_service.find_by_barcode(barcode)
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return error_response(e)


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        product = inventory_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return error_response(e)


@products_bp.post("")
@require_auth
@require_role(ROLE_OWNER)
def create_product():
    """
    Create a product.

    Body: name, price_cents (or price as a decimal string), barcode,
    category, min_stock, current_stock (opening stock).
    """
    try:
        product = inventory_service.create_product(request.get_json(silent=True), g.operator)
        return jsonify({"product": product.to_dict()}), 201

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.route("/<int:product_id>", methods=["PUT", "PATCH"])
@require_auth
@require_role(ROLE_OWNER)
def update_product(product_id: int):
    """Partial update of catalogue fields; current_stock is rejected."""
    try:
        product = inventory_service.update_product(product_id, request.get_json(silent=True), g.operator)
        return jsonify({"product": product.to_dict()}), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_OWNER)
def delete_product(product_id: int):
    """Soft delete (deactivate)."""
    try:
        product = inventory_service.deactivate_product(product_id, g.operator)
        return jsonify({"product": product.to_dict()}), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
