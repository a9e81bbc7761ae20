from flask import current_app

from services.booking_service import BookingService
from services.locks import SlotLocks
from services.stats import StatsAggregator
from services.store import build_store
from services.sweeper import ExpirySweeper


def init_app(app, store=None, clock=None):
    """Build the store, booking service and sweeper for `app`."""
    store = store or build_store(app.config["STORE_BACKEND"])
    service = BookingService(store, app.config["BOOKING_RATES"], SlotLocks(), clock=clock)
    sweeper = ExpirySweeper(service, app.config["SWEEP_INTERVAL_SECONDS"], app=app)

    app.extensions["booking_service"] = service
    app.extensions["stats"] = StatsAggregator(store)
    app.extensions["expiry_sweeper"] = sweeper
    return service


def get_booking_service() -> BookingService:
    return current_app.extensions["booking_service"]


def get_stats() -> StatsAggregator:
    return current_app.extensions["stats"]


def get_sweeper() -> ExpirySweeper:
    return current_app.extensions["expiry_sweeper"]
