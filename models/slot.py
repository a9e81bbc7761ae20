from models.db import db

class ParkingSlot(db.Model):
    __tablename__ = "parking_slots"

    # 1..SLOT_COUNT, assigned at seed time, never autoincremented
    id = db.Column(db.Integer, primary_key=True, autoincrement=False)

    occupied = db.Column(db.Boolean, default=False, nullable=False, index=True)
    hold_expiry = db.Column(db.DateTime, nullable=True)
    occupant_vehicle = db.Column(db.String(20), nullable=True)
    occupant_user_id = db.Column(db.Integer, nullable=True)
