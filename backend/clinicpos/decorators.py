# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User


OPERATOR_HEADER = "X-Operator-Id"


def require_operator(f):
    """
    Require an authenticated, active operator.

    Credential checks happen upstream (the POS shell / gateway); the core
    only needs the effect. Sets:
    - g.current_user: The active User performing the request

    Returns 401 if the header is missing, malformed, unknown or inactive.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(OPERATOR_HEADER) or "").strip()
        if not raw.isdigit():
            return jsonify({"error": "Authentication required"}), 401

        user = db.session.get(User, int(raw))
        if user is None or not user.is_active:
            return jsonify({"error": "Invalid or inactive operator"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require an operator with the ADMIN role. Use after @require_operator."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, "current_user", None)
        if user is None:
            return jsonify({"error": "Authentication required"}), 401
        if user.role != "ADMIN":
            return jsonify({"error": "Permission denied", "required_role": "ADMIN"}), 403
        return f(*args, **kwargs)

    return decorated_function
