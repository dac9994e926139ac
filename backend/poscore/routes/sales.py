# Overview: Flask API routes for sale history; parses input and returns JSON responses.

# backend/poscore/routes/sales.py
"""Sales history routes. Owners see every sale; cashiers see their own."""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.auth_service import ROLE_CASHIER, ROLE_OWNER
from ..services.errors import PosError
from ..decorators import require_auth, require_role, error_response


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
@require_role(ROLE_OWNER, ROLE_CASHIER)
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - operator_id: int (owner only; cashiers are always scoped to themselves)
    - limit: int (default 100, max 500)
    - offset: int (default 0)
    """
    try:
        limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
        offset = max(request.args.get("offset", 0, type=int), 0)

        if g.operator.role == ROLE_OWNER:
            operator_id = request.args.get("operator_id", type=int)
        else:
            operator_id = g.operator.id

        sales = sales_service.list_sales(operator_id=operator_id, limit=limit, offset=offset)
        return jsonify({
            "items": [s.to_dict(include_lines=False) for s in sales],
            "count": len(sales),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_role(ROLE_OWNER, ROLE_CASHIER)
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        if g.operator.role != ROLE_OWNER and sale.operator_id != g.operator.id:
            return jsonify({"error": "Sale not found"}), 404
        return jsonify({"sale": sale.to_dict()}), 200

    except PosError as e:
        return error_response(e)
