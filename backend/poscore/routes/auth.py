# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/poscore/routes/auth.py
"""
Authentication API routes

Accounts are created by the owner through the CLI ('flask users create');
there is no self-registration.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.cart_service import carts
from ..decorators import require_auth
from poscore.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)

        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(user.id)

        current_app.logger.info("User %s logged in (role=%s)", user.id, user.role)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
        }), 200

    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current token and drop the operator's in-memory carts."""
    try:
        session_service.revoke_session(g.token, reason="User logout")
        carts.end(g.operator.id)
        return jsonify({"message": "Logged out"}), 200

    except Exception:
        current_app.logger.exception("Logout failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
