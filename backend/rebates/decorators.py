# Overview: Request authentication and role-policy decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import AuthorizationError, json_error
from .extensions import db
from .models import User
from .services import permission_service, token_service


def require_auth(f):
    """
    Require a valid bearer token for an active user.

    Sets the following Flask g attributes:
    - g.current_user: the User loaded fresh from the database

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or malformed token
    - User no longer exists or is deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        claims = token_service.decode_token(token)
        if not claims:
            return jsonify({"error": "Invalid or expired token"}), 401

        # Role and active flag come from the database, not from the token
        user = db.session.get(User, claims.user_id)
        if user is None or not user.is_active:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_permission(action: str):
    """Require a role-level grant for action. Ownership checks stay in the services."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401
            try:
                permission_service.require(g.current_user, action)
            except AuthorizationError as e:
                return json_error(e)
            return f(*args, **kwargs)

        return decorated_function
    return decorator

