from flask import Blueprint, request, jsonify, current_app, g

from services import get_booking_service
from services.errors import BookingError
from utils import payments
from utils.audit import log_event
from utils.auth_context import login_required
from utils.parsing import as_int

payments_bp = Blueprint("payments", __name__)


# ---------- USERS: pay and book in one step (payment page) ----------
@payments_bp.post("/payment")
@login_required
def pay_and_book():
    data = request.get_json(silent=True) or {}
    slot_id = as_int(data.get("slotNumber"))
    hours = as_int(data.get("duration"))
    if slot_id is None or hours is None:
        return jsonify(error="slotNumber and duration are required"), 400

    vehicle = g.user.registration_number
    if not vehicle:
        return jsonify(error="Add a vehicle registration number to your profile first"), 400

    service = get_booking_service()
    try:
        amount = service.price_for(hours)
        service.get_slot(slot_id)
    except BookingError as exc:
        return jsonify(error=exc.message), exc.status_code

    # the amount always comes from the rate table, whatever the client sent
    reference = payments.charge(amount, current_app.config.get("CURRENCY", "INR"),
                                description=f"Parking slot #{slot_id}, {hours}h")
    try:
        booking = service.book(g.user.id, slot_id, hours, vehicle, payment_reference=reference)
    except BookingError as exc:
        payments.void(reference)
        log_event("PAYMENT_VOIDED", user_id=g.user.id, entity="slot", entity_id=slot_id,
                  metadata={"reason": exc.message, "reference": reference})
        return jsonify(error=exc.message), exc.status_code

    log_event("PAYMENT_PAID", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"amount": amount, "reference": reference})
    return jsonify(
        success=True,
        bookingId=booking.id,
        message="Payment successful",
        booking=booking.to_dict(),
    ), 201
