# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .domain import Role
from .services import session_service
from .services.errors import RoleNotPermitted


def _is_authenticated() -> bool:
    return hasattr(g, 'actor')


def require_auth(f):
    """
    Require a valid bearer token and establish the acting identity.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.actor: Actor(id, role) passed to the lifecycle services

    Returns 401 if the Authorization header is missing, or the token is
    unknown, expired, revoked, or belongs to a deactivated user.
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
        g.actor = context.actor

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: Role):
    """
    Restrict a route to the given roles. Must be applied after @require_auth.
    """
    allowed = frozenset(roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.actor.role not in allowed:
                err = RoleNotPermitted(g.actor.role, sorted(r.value for r in allowed))
                return jsonify(err.to_dict()), err.http_status

            return f(*args, **kwargs)

        return decorated_function
    return decorator
