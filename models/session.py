from datetime import datetime
from models.db import db


class Session(db.Model):
    """Server-side login session; the cookie carries the raw token, we keep its hash."""
    __tablename__ = "sessions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(128), unique=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    revoked = db.Column(db.Boolean, default=False, nullable=False)
    ip = db.Column(db.String(64), nullable=True)

    user = db.relationship("User", lazy="joined")

    def is_valid(self, now=None) -> bool:
        return not self.revoked and self.expires_at > (now or datetime.utcnow())
