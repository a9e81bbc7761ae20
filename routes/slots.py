from flask import Blueprint, request, jsonify, current_app, g

from services import get_booking_service
from services.errors import BookingError
from utils.audit import log_event
from utils.auth_context import login_required
from utils.locations import locations_with_availability
from utils.parsing import as_int, as_float

slots_bp = Blueprint("slots", __name__)

MAX_VEHICLE_LEN = 20


@slots_bp.get("/slots")
def list_slots():
    slots = get_booking_service().list_slots()
    booked = sum(1 for s in slots if s.occupied)
    return jsonify(
        slots=[s.to_dict() for s in slots],
        available=len(slots) - booked,
        booked=booked,
        total=len(slots),
    ), 200


@slots_bp.get("/rates")
def list_rates():
    rates = get_booking_service().rates
    return jsonify(
        currency=current_app.config.get("CURRENCY", "INR"),
        rates=[{"hours": h, "amount": rates[h]} for h in sorted(rates)],
    ), 200


@slots_bp.get("/locations")
def list_locations():
    lat = as_float(request.args.get("lat"))
    lng = as_float(request.args.get("lng"))
    slots = get_booking_service().list_slots()
    return jsonify(locations_with_availability(slots, lat, lng)), 200


# ---------- USERS: book slot ----------
@slots_bp.post("/slots/book")
@login_required
def book_slot():
    data = request.get_json(silent=True) or {}
    raw_slot = data.get("slotId")
    raw_hours = data.get("hours")
    vehicle = data.get("registrationNumber")

    if raw_slot is None or raw_hours is None or not isinstance(vehicle, str) or not vehicle.strip():
        return jsonify(error="slotId, hours and registrationNumber are required"), 400

    slot_id = as_int(raw_slot)
    if slot_id is None:
        return jsonify(error="Invalid slotId"), 400
    hours = as_int(raw_hours)
    if hours is None:
        return jsonify(error="Invalid duration"), 400
    vehicle = vehicle.strip().upper()
    if len(vehicle) > MAX_VEHICLE_LEN:
        return jsonify(error="Invalid registrationNumber"), 400

    try:
        booking = get_booking_service().book(g.user.id, slot_id, hours, vehicle)
    except BookingError as exc:
        log_event("BOOKING_FAIL", user_id=g.user.id, entity="slot", entity_id=slot_id,
                  metadata={"reason": exc.message})
        return jsonify(error=exc.message), exc.status_code

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"slot_id": slot_id, "hours": hours, "amount": booking.amount})
    return jsonify(success=True, message="Slot booked successfully", booking=booking.to_dict()), 201
