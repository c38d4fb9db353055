# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User
from .services.access_service import actor_from_user


def require_actor(f):
    """
    Resolve the acting user and establish branch context.

    Authentication happens upstream; the caller identifies itself with the
    X-User-Id header. Sets the following Flask g attributes:
    - g.current_user: The active User row
    - g.actor: Actor(user_id, role, branch_id) handed to the services

    Returns 401 if the header is missing or names no active user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = request.headers.get("X-User-Id")
        if not user_id:
            return jsonify({"kind": "Unauthorized", "message": "Authentication required", "details": {}}), 401

        user = db.session.query(User).filter_by(id=user_id, is_active=True).first()
        if not user:
            return jsonify({"kind": "Unauthorized", "message": "Unknown or inactive user", "details": {}}), 401

        g.current_user = user
        g.actor = actor_from_user(user)

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Allow only the given roles. Must be applied after @require_actor."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            actor = getattr(g, "actor", None)
            if actor is None:
                return jsonify({"kind": "Unauthorized", "message": "Authentication required", "details": {}}), 401
            if actor.role not in roles:
                return jsonify({
                    "kind": "Forbidden",
                    "message": "Permission denied",
                    "details": {"required_roles": list(roles), "role": actor.role},
                }), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator
