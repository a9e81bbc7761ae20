import json
import logging

from flask import has_request_context, request
from models import db
from models.audit_log import AuditLog

logger = logging.getLogger("smartpark.audit")


def _client_ip():
    if not has_request_context():
        return None
    return request.headers.get("X-Forwarded-For", request.remote_addr)


def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None):
    """Persist an audit row and mirror it to the application log."""
    row = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=_client_ip(),
        metadata_json=json.dumps(metadata, default=str) if metadata else None
    )
    db.session.add(row)
    db.session.commit()
    logger.info("%s user=%s %s=%s %s", action, user_id, entity or "-", row.entity_id or "-", metadata or "")
    return row
