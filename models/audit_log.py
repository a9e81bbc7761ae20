import json
from datetime import datetime
from models.db import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)  # null for anonymous and sweeper events
    action = db.Column(db.String(80), nullable=False)  # BOOKING_CREATE, ADMIN_SLOT_RELEASE, ...
    entity = db.Column(db.String(80), nullable=True)   # booking, slot, user
    entity_id = db.Column(db.String(80), nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    @property
    def metadata_dict(self):
        if not self.metadata_json:
            return None
        try:
            return json.loads(self.metadata_json)
        except ValueError:
            return self.metadata_json

    def to_dict(self):
        return {
            "id": self.id,
            "created_at": self.timestamp.isoformat() if self.timestamp else None,
            "user_id": self.user_id,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "ip": self.ip,
            "metadata": self.metadata_dict,
        }
