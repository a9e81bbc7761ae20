from flask import Blueprint, request, jsonify, g

from services import get_booking_service
from services.errors import BookingError
from utils.audit import log_event
from utils.auth_context import login_required
from utils.parsing import as_int

bookings_bp = Blueprint("bookings", __name__)


# ---------- USERS: cancel own booking ----------
@bookings_bp.post("/bookings/cancel")
@login_required
def cancel_booking():
    data = request.get_json(silent=True) or {}
    slot_id = as_int(data.get("slotNumber"))
    if slot_id is None:
        return jsonify(error="slotNumber required"), 400

    try:
        booking = get_booking_service().cancel(g.user.id, slot_id)
    except BookingError as exc:
        return jsonify(error=exc.message), exc.status_code

    log_event("BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"slot_id": slot_id})
    return jsonify(success=True, message="Booking cancelled successfully", booking=booking.to_dict()), 200


# ---------- USERS: active bookings ----------
@bookings_bp.get("/bookings/me")
@login_required
def my_bookings():
    rows = get_booking_service().active_bookings(g.user.id)
    return jsonify([b.to_dict() for b in rows]), 200


# ---------- USERS: full history ----------
@bookings_bp.get("/history")
@login_required
def my_history():
    rows = get_booking_service().history(g.user.id)
    return jsonify([b.to_dict() for b in rows]), 200
