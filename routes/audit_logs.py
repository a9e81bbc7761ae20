from flask import Blueprint, jsonify, request

from models.audit_log import AuditLog
from security.rbac import require_roles
from utils.parsing import as_int

audit_bp = Blueprint("audit", __name__, url_prefix="/admin")


@audit_bp.get("/audit-logs")
@require_roles("ADMIN")
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    action = (request.args.get("action") or "").strip().upper()
    user_id = as_int(request.args.get("user_id"))

    q = AuditLog.query
    if action:
        q = q.filter(AuditLog.action == action)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([r.to_dict() for r in rows]), 200
