from datetime import datetime, timedelta

from app import create_app
from config import Config, TestConfig
from models import db
from services.booking_service import BookingService
from services.records import ACTIVE
from services.store import MemoryStore


class FakeClock:
    def __init__(self, start=datetime(2026, 3, 1, 12, 0, 0)):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class MemoryBackendMixin:
    """Booking service over the in-memory store, no Flask app involved."""

    def setUp(self):
        self.clock = FakeClock()
        self.store = MemoryStore()
        self.store.slots.initialize(Config.SLOT_COUNT)
        self.service = BookingService(self.store, Config.BOOKING_RATES, clock=self.clock)
        super().setUp()


class SqlBackendMixin:
    """Booking service over the SQL store, SQLite in memory, app context pushed."""

    def setUp(self):
        self.clock = FakeClock()
        self.app = create_app(TestConfig, clock=self.clock)
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.service = self.app.extensions["booking_service"]
        self.store = self.service.store
        super().setUp()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()
        super().tearDown()


class InvariantAssertions:

    def assertSlotInvariant(self):
        active = self.store.ledger.list(status=ACTIVE)
        for slot in self.store.slots.list():
            holding = [b for b in active if b.slot_id == slot.id]
            if slot.occupied:
                self.assertEqual(len(holding), 1, f"slot {slot.id} occupied with {len(holding)} active bookings")
                self.assertEqual(holding[0].user_id, slot.occupant_user_id)
                self.assertIsNotNone(slot.hold_expiry)
            else:
                self.assertEqual(holding, [], f"free slot {slot.id} has active bookings")
                self.assertIsNone(slot.hold_expiry)
                self.assertIsNone(slot.occupant_user_id)
                self.assertIsNone(slot.occupant_vehicle)
