import logging
from functools import wraps
from flask import g, jsonify, request

logger = logging.getLogger(__name__)


def require_roles(*role_names: str):
    """
    Allow the wrapped view only for users holding one of `role_names`.

    Usage: @require_roles("ADMIN")
    Anonymous callers get 401, signed-in users without the role get 403.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            if not any(user.has_role(name) for name in role_names):
                logger.warning("User %s denied %s %s (needs %s)",
                               user.id, request.method, request.path, "/".join(role_names))
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
