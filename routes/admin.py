from flask import Blueprint, jsonify, g, request

from models.user import User
from security.rbac import require_roles
from services import get_booking_service, get_stats
from services.errors import BookingError
from services.records import ACTIVE, BOOKING_STATUSES, CANCELLED
from utils.audit import log_event
from utils.parsing import MAX_INT, as_int

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

RECENT_CANCELLATIONS = 20


def _users_by_id(bookings):
    user_ids = {b.user_id for b in bookings}
    if not user_ids:
        return {}
    return {u.id: u for u in User.query.filter(User.id.in_(user_ids)).all()}


def _admin_booking_row(booking, user):
    row = booking.to_dict()
    row.update({
        "slotNumber": booking.slot_id,
        "duration": booking.duration_hours,
        "bookedAt": row["bookedTime"],
        "userName": user.name if user else "Unknown",
        "userEmail": user.email if user else "Unknown",
        "phoneNumber": (user.phone_number if user else None) or "N/A",
    })
    if booking.status == CANCELLED:
        row["cancelledAt"] = row["resolvedAt"]
    return row


@admin_bp.get("/stats")
@require_roles("ADMIN")
def stats():
    service = get_booking_service()
    snapshot = get_stats().collect(total_users=User.query.count())

    bookings = service.list_bookings(status=ACTIVE) + service.list_bookings(status=CANCELLED)
    users = _users_by_id(bookings)

    log_event("ADMIN_STATS_VIEW", user_id=g.user.id)
    return jsonify(
        stats=snapshot.to_dict(),
        bookings=[_admin_booking_row(b, users.get(b.user_id)) for b in bookings],
        users=[u.to_public_dict() for u in User.query.order_by(User.created_at.desc()).all()],
    ), 200


@admin_bp.get("/bookings")
@require_roles("ADMIN")
def list_bookings():
    status = (request.args.get("status") or "").strip().lower() or None
    if status and status not in BOOKING_STATUSES:
        return jsonify(error=f"status must be one of {', '.join(BOOKING_STATUSES)}"), 400
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    bookings = get_booking_service().list_bookings(status=status, limit=limit)
    users = _users_by_id(bookings)
    return jsonify([_admin_booking_row(b, users.get(b.user_id)) for b in bookings]), 200


@admin_bp.get("/users")
@require_roles("ADMIN")
def list_users():
    users = User.query.order_by(User.created_at.desc()).limit(200).all()
    return jsonify([u.to_public_dict() for u in users]), 200


@admin_bp.get("/cancellations")
@require_roles("ADMIN")
def recent_cancellations():
    bookings = get_booking_service().list_bookings(status=CANCELLED, limit=RECENT_CANCELLATIONS)
    users = _users_by_id(bookings)

    out = []
    for b in bookings:
        user = users.get(b.user_id)
        name = user.name if user else "Unknown"
        out.append({
            "id": b.id,
            "userName": name,
            "userEmail": user.email if user else "Unknown",
            "slotNumber": b.slot_id,
            "amount": b.amount,
            "refundStatus": b.refund_status,
            "cancelledAt": b.resolved_at.isoformat() if b.resolved_at else None,
            "message": f"User {name} cancelled booking for slot {b.slot_id}",
        })
    return jsonify(out), 200


@admin_bp.post(f"/release-slot/<int(max={MAX_INT}):slot_id>")
@require_roles("ADMIN")
def release_slot(slot_id: int):
    try:
        booking = get_booking_service().release_by_admin(slot_id)
    except BookingError as exc:
        return jsonify(error=exc.message), exc.status_code

    log_event("ADMIN_SLOT_RELEASE", user_id=g.user.id, entity="slot", entity_id=slot_id,
              metadata={"booking_id": booking.id if booking else None})
    return jsonify(
        success=True,
        message="Slot released",
        booking=booking.to_dict() if booking else None,
    ), 200


@admin_bp.post("/approve-refund")
@require_roles("ADMIN")
def approve_refund():
    data = request.get_json(silent=True) or {}
    booking_id = as_int(data.get("refundId"))
    if booking_id is None:
        return jsonify(error="refundId required"), 400

    amount = None
    if data.get("amount") is not None:
        amount = as_int(data.get("amount"))
        if amount is None:
            return jsonify(error="amount must be a whole number"), 400

    actor = (data.get("userName") or "").strip()[:120] or g.user.name

    try:
        booking = get_booking_service().approve_refund(booking_id, amount, actor)
    except BookingError as exc:
        return jsonify(error=exc.message), exc.status_code

    log_event("ADMIN_REFUND_APPROVE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"amount": booking.refund_amount, "for": actor})
    return jsonify(
        success=True,
        message=f"Refund of {booking.refund_amount} approved for {actor}",
        booking=booking.to_dict(),
    ), 200
