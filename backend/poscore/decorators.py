# Overview: Request and role decorators for API routes, plus the error-to-response mapping.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .services.errors import (
    AuthorizationError,
    InsufficientStock,
    MovementNotFound,
    NotificationNotFound,
    PartialApply,
    PosError,
    ProductNotFound,
    SaleNotFound,
    StoreUnavailable,
    ValidationError,
)


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'operator')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.operator: Operator(id, name, role) passed to the core services
    - g.session_context: The full SessionContext object
    - g.token: The plaintext bearer token (for logout)

    Returns 401 if the header is missing, or the token is unknown,
    expired or revoked, or the account is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.operator = context.operator
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require the authenticated operator to hold one of roles (403 otherwise)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.operator.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": sorted(roles),
                    "message": f"Role '{g.operator.role}' may not access this resource",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def error_response(exc: PosError):
    """
    Translate a core error into a JSON response.

    not found -> 404, validation -> 400, insufficient stock -> 409,
    authorization -> 403, store unavailable -> 503, partial apply -> 500.
    """
    payload = exc.to_dict()

    if isinstance(exc, (ProductNotFound, SaleNotFound, MovementNotFound, NotificationNotFound)):
        return jsonify(payload), 404
    if isinstance(exc, ValidationError):
        return jsonify(payload), 400
    if isinstance(exc, InsufficientStock):
        return jsonify(payload), 409
    if isinstance(exc, AuthorizationError):
        return jsonify(payload), 403
    if isinstance(exc, StoreUnavailable):
        return jsonify(payload), 503
    if isinstance(exc, PartialApply):
        payload["partial_apply"] = True
        payload["movement_id"] = exc.details.get("movement_id")
        return jsonify(payload), 500
    return jsonify(payload), 400
