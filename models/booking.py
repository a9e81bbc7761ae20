from datetime import datetime
from models.db import db

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    slot_id = db.Column(db.Integer, db.ForeignKey("parking_slots.id"), nullable=False, index=True)
    vehicle = db.Column(db.String(20), nullable=False)

    duration_hours = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Integer, nullable=False)  # from the rate table

    status = db.Column(db.String(20), nullable=False, default="active", index=True)
    # status values: active, cancelled, released, expired

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    hold_expiry = db.Column(db.DateTime, nullable=False)
    resolved_at = db.Column(db.DateTime, nullable=True)

    payment_status = db.Column(db.String(20), nullable=False, default="completed")
    payment_reference = db.Column(db.String(64), nullable=True)

    refund_status = db.Column(db.String(20), nullable=False, default="none")
    # refund values: none, pending, approved
    refund_amount = db.Column(db.Integer, nullable=True)
    refund_approved_at = db.Column(db.DateTime, nullable=True)
    refund_approved_by = db.Column(db.String(120), nullable=True)
