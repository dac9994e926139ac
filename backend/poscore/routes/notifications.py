# Overview: Flask API routes for role-addressed notifications.

# backend/poscore/routes/notifications.py
"""
Notification routes.

Every list is filtered by the caller's role; marking read is the only
mutation and it is one-way.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import notification_service
from ..services.auth_service import ROLE_CHECKER
from ..services.errors import PosError
from ..decorators import require_auth, require_role, error_response


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """
    Query params:
    - unread: bool (optional) - only unread notifications
    - limit: int (default 100, max 500)
    """
    try:
        unread_only = request.args.get("unread", "").lower() in ("1", "true", "yes")
        limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
        items = notification_service.list_notifications(
            g.operator.role,
            unread_only=unread_only,
            limit=limit,
        )
        return jsonify({"items": [n.to_dict() for n in items], "count": len(items)}), 200

    except Exception:
        current_app.logger.exception("Failed to list notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.get("/unread-count")
@require_auth
def unread_count_route():
    return jsonify({"unread": notification_service.unread_count(g.operator.role)}), 200


@notifications_bp.post("/<int:notification_id>/read")
@require_auth
def mark_read_route(notification_id: int):
    try:
        notification = notification_service.mark_read(notification_id, g.operator.role)
        return jsonify({"notification": notification.to_dict()}), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to mark notification read")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.post("/low-stock-alert")
@require_auth
@require_role(ROLE_CHECKER)
def low_stock_alert_route():
    """Checker flags products to the owner. Body: {"product_ids": [int, ...]}."""
    try:
        data = request.get_json(silent=True) or {}
        product_ids = data.get("product_ids")
        if not isinstance(product_ids, list):
            return jsonify({"error": "product_ids must be a list"}), 400

        notification = notification_service.send_low_stock_alert(product_ids, g.operator)
        return jsonify({"notification": notification.to_dict()}), 201

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to send low stock alert")
        return jsonify({"error": "Internal server error"}), 500
