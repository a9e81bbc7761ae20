from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User, Role
from security.password import hash_password, verify_password
from security.session import (
    create_session, set_session_cookie, clear_session_cookie, revoke_current_session,
)
from security.csrf import issue_csrf_token, clear_csrf_token
from utils.audit import log_event
from utils.auth_context import login_required


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

MIN_PASSWORD_LENGTH = 8


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _clean(value, max_len: int):
    """Stripped string or None; False when present but invalid."""
    if value is None:
        return None
    if not isinstance(value, str) or len(value.strip()) > max_len:
        return False
    return value.strip() or None


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    registration_number = _clean(data.get("registrationNumber"), 20)
    phone_number = _clean(data.get("phoneNumber"), 30)

    if not name or not email or not password:
        return jsonify(error="Missing required fields"), 400
    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify(error=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"), 400
    if registration_number is False or phone_number is False:
        return jsonify(error="Invalid registrationNumber or phoneNumber"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password, current_app.config.get("BCRYPT_ROUNDS", 12)),
        registration_number=registration_number.upper() if registration_number else None,
        phone_number=phone_number,
    )
    db.session.add(user)
    db.session.flush()

    role_names = ["USER"]
    admin_code = current_app.config.get("ADMIN_SIGNUP_CODE")
    if admin_code and data.get("adminCode") == admin_code:
        role_names.append("ADMIN")
    user.roles.extend(Role.query.filter(Role.name.in_(role_names)).all())

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id, metadata={"roles": role_names})

    return jsonify(success=True, message="User registered successfully", user=user.to_public_dict()), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify(error="Email and password required"), 400

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    raw_token = create_session(user.id)

    resp = jsonify(success=True, message="Login successful", user=user.to_public_dict())
    resp = set_session_cookie(resp, raw_token)
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_current_session()
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    return clear_csrf_token(clear_session_cookie(resp)), 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(g.user.to_public_dict()), 200


@auth_bp.get("/profile")
@login_required
def get_profile():
    return jsonify(g.user.to_public_dict()), 200


@auth_bp.put("/profile")
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}
    name = _clean(data.get("name"), 120)
    registration_number = _clean(data.get("registrationNumber"), 20)
    phone_number = _clean(data.get("phoneNumber"), 30)

    if False in (name, registration_number, phone_number):
        return jsonify(error="Invalid profile fields"), 400

    if name:
        g.user.name = name
    if "registrationNumber" in data:
        g.user.registration_number = registration_number.upper() if registration_number else None
    if "phoneNumber" in data:
        g.user.phone_number = phone_number

    db.session.commit()
    log_event("PROFILE_UPDATE", user_id=g.user.id)
    return jsonify(success=True, user=g.user.to_public_dict()), 200
