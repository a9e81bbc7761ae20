from functools import wraps
from flask import g, jsonify
from security.session import get_session_from_request


def load_current_user():
    """before_request hook: resolve the session cookie to g.session / g.user."""
    sess = get_session_from_request()
    g.session = sess
    g.user = sess.user if sess else None


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
