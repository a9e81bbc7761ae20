from flask import Blueprint, jsonify

from services import get_booking_service, get_sweeper

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(
        status="ok",
        store=get_booking_service().store.backend,
        sweeper_running=get_sweeper().running,
    ), 200
