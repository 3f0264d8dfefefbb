# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User


def require_user(f):
    """
    Resolve the acting user for the request.

    The authenticated user id arrives in the X-User-Id header, set by the
    gateway in front of this service. Sets g.current_user.

    Returns 401 if:
    - No X-User-Id header, or not an integer
    - Unknown user
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_user_id = request.headers.get("X-User-Id", "").strip()
        if not raw_user_id:
            return jsonify({"error": "Authentication required"}), 401

        try:
            user_id = int(raw_user_id)
        except ValueError:
            return jsonify({"error": "Invalid user id"}), 401

        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            return jsonify({"error": "Unknown or inactive user"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function
