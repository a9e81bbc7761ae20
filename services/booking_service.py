"""
Booking Service: the only writer of slot occupancy and booking status.

Each operation that touches a slot runs under that slot's lock, so the slot
change and the ledger change happen as one unit relative to every other
book/cancel/release/expire on the same slot. Ordering rules:

- book acquires the slot before writing the ledger, so there is never a
  ledger row for a slot that was not secured;
- cancel transitions the ledger row first and only releases the slot if
  that transition won.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from services.errors import (
    AlreadyResolved, BookingError, InvalidDuration, NotFound, SlotUnavailable,
)
from services.locks import SlotLocks
from services.records import (
    ACTIVE, CANCELLED, EXPIRED, REFUND_APPROVED, RELEASED, BookingRecord, SlotState,
)
from services.store import Store

logger = logging.getLogger(__name__)


class BookingService:

    def __init__(self, store: Store, rates: Dict[int, int], locks: Optional[SlotLocks] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.rates = {int(hours): int(price) for hours, price in rates.items()}
        self.locks = locks or SlotLocks()
        self._clock = clock or datetime.utcnow

    def now(self) -> datetime:
        return self._clock()

    # ---------- reads ----------

    def price_for(self, duration_hours) -> int:
        if isinstance(duration_hours, bool) or duration_hours not in self.rates:
            allowed = ", ".join(str(h) for h in sorted(self.rates))
            raise InvalidDuration(f"Duration must be one of {allowed} hours")
        return self.rates[duration_hours]

    def list_slots(self) -> List[SlotState]:
        return self.store.slots.list()

    def get_slot(self, slot_id: int) -> SlotState:
        slot = self.store.slots.get(slot_id)
        if slot is None:
            raise NotFound(f"Slot {slot_id} not found")
        return slot

    def active_bookings(self, user_id: int) -> List[BookingRecord]:
        return self.store.ledger.list(status=ACTIVE, user_id=user_id)

    def history(self, user_id: int) -> List[BookingRecord]:
        return self.store.ledger.list(user_id=user_id)

    def list_bookings(self, status: Optional[str] = None, limit: Optional[int] = None) -> List[BookingRecord]:
        return self.store.ledger.list(status=status, limit=limit)

    # ---------- user operations ----------

    def book(self, user_id: int, slot_id: int, duration_hours: int, vehicle: str,
             payment_reference: Optional[str] = None) -> BookingRecord:
        amount = self.price_for(duration_hours)
        self.get_slot(slot_id)

        now = self.now()
        expiry = now + timedelta(hours=duration_hours)

        with self.locks.hold(slot_id):
            if not self.store.slots.try_acquire(slot_id, expiry, vehicle, user_id):
                raise SlotUnavailable("Slot already booked")

            record = BookingRecord(
                user_id=user_id,
                slot_id=slot_id,
                vehicle=vehicle,
                duration_hours=int(duration_hours),
                amount=amount,
                hold_expiry=expiry,
                created_at=now,
                payment_reference=payment_reference,
            )
            try:
                self.store.ledger.append(record)
            except Exception:
                # undo the acquire so the slot is not stuck without a booking
                self.store.slots.release(slot_id)
                raise

        logger.info("Booking %s: slot %s held by user %s until %s", record.id, slot_id, user_id, expiry)
        return record

    def cancel(self, user_id: int, slot_id: int) -> BookingRecord:
        with self.locks.hold(slot_id):
            booking = self.store.ledger.find_active(user_id, slot_id)
            if booking is None:
                raise NotFound("Booking not found")

            if not self.store.ledger.transition(booking.id, ACTIVE, CANCELLED, self.now()):
                raise AlreadyResolved("Booking was already resolved")

            self.store.slots.release(slot_id)

        logger.info("Booking %s cancelled by user %s, slot %s freed", booking.id, user_id, slot_id)
        return self.store.ledger.get(booking.id)

    # ---------- admin operations ----------

    def release_by_admin(self, slot_id: int) -> Optional[BookingRecord]:
        """Free a slot. Returns the booking that was released, if the ledger had one."""
        with self.locks.hold(slot_id):
            slot = self.get_slot(slot_id)

            booking = None
            if slot.occupant_user_id is not None:
                booking = self.store.ledger.find_active(slot.occupant_user_id, slot_id)
            if booking is not None and not self.store.ledger.transition(
                booking.id, ACTIVE, RELEASED, self.now()
            ):
                booking = None

            self.store.slots.release(slot_id)

        if booking is None:
            logger.info("Slot %s released by admin with no active booking", slot_id)
            return None
        logger.info("Slot %s released by admin, booking %s released", slot_id, booking.id)
        return self.store.ledger.get(booking.id)

    def approve_refund(self, booking_id: int, amount: Optional[int] = None,
                       actor_label: Optional[str] = None) -> BookingRecord:
        booking = self.store.ledger.get(booking_id)
        if booking is None:
            raise NotFound("Refund not found")

        if amount is None:
            amount = booking.amount
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise BookingError("Refund amount must be a non-negative integer")

        if booking.refund_status == REFUND_APPROVED:
            logger.warning(
                "Refund for booking %s re-approved: %s -> %s", booking_id, booking.refund_amount, amount
            )

        if not self.store.ledger.approve_refund(booking_id, amount, actor_label, self.now()):
            raise NotFound("Refund not found")
        return self.store.ledger.get(booking_id)

    # ---------- expiry ----------

    def expired_slot_ids(self, now: Optional[datetime] = None) -> List[int]:
        now = now or self.now()
        return [s.id for s in self.store.slots.list() if s.is_expired(now)]

    def expire_slot(self, slot_id: int, now: Optional[datetime] = None) -> bool:
        """Free a slot whose hold has lapsed. False if it was not (or no longer) expired."""
        now = now or self.now()
        with self.locks.hold(slot_id):
            slot = self.store.slots.get(slot_id)
            if slot is None or not slot.is_expired(now):
                return False

            # ledger first: if it fails the slot stays occupied and expired, so the next tick retries
            booking = self.store.ledger.find_active_for_slot(slot_id)
            if booking is not None and booking.hold_expiry < now:
                self.store.ledger.transition(booking.id, ACTIVE, EXPIRED, now)
            else:
                booking = None
            released = self.store.slots.release_expired(slot_id, now)

        if released:
            logger.info("Slot %s hold expired, booking %s", slot_id, booking.id if booking else None)
        return released
