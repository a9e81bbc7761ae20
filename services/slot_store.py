"""
Slot Store: the fixed set of parking slots and their occupancy.

`try_acquire` and `release` on the same slot are mutually exclusive. The
memory store serialises them with a per-slot lock; the SQL store issues a
single conditional UPDATE, so the database does the compare-and-swap.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.slot import ParkingSlot
from services.locks import SlotLocks
from services.records import SlotState


class SlotStore(ABC):

    @abstractmethod
    def initialize(self, count: int) -> None:
        """Create slots 1..count that do not exist yet."""

    @abstractmethod
    def get(self, slot_id: int) -> Optional[SlotState]:
        pass

    @abstractmethod
    def list(self) -> List[SlotState]:
        pass

    @abstractmethod
    def try_acquire(self, slot_id: int, expiry: datetime, vehicle: str, user_id: int) -> bool:
        """Occupy a free slot. False, with no mutation, if already occupied."""

    @abstractmethod
    def release(self, slot_id: int) -> bool:
        """Free a slot. False if it was already free; the slot ends free either way."""

    @abstractmethod
    def release_expired(self, slot_id: int, now: datetime) -> bool:
        """Free a slot only if it is occupied and its hold lapsed before `now`."""


class MemorySlotStore(SlotStore):

    def __init__(self):
        self._slots = {}
        self._locks = SlotLocks()

    def initialize(self, count):
        for slot_id in range(1, count + 1):
            with self._locks.hold(slot_id):
                self._slots.setdefault(slot_id, SlotState(id=slot_id))

    def get(self, slot_id):
        slot = self._slots.get(slot_id)
        if slot is None:
            return None
        with self._locks.hold(slot_id):
            return SlotState(**vars(slot))

    def list(self):
        return [self.get(slot_id) for slot_id in sorted(self._slots)]

    def try_acquire(self, slot_id, expiry, vehicle, user_id):
        slot = self._slots.get(slot_id)
        if slot is None:
            return False
        with self._locks.hold(slot_id):
            if slot.occupied:
                return False
            slot.occupied = True
            slot.hold_expiry = expiry
            slot.occupant_vehicle = vehicle
            slot.occupant_user_id = user_id
            return True

    def release(self, slot_id):
        slot = self._slots.get(slot_id)
        if slot is None:
            return False
        with self._locks.hold(slot_id):
            was_occupied = slot.occupied
            slot.occupied = False
            slot.hold_expiry = None
            slot.occupant_vehicle = None
            slot.occupant_user_id = None
            return was_occupied

    def release_expired(self, slot_id, now):
        slot = self._slots.get(slot_id)
        if slot is None:
            return False
        with self._locks.hold(slot_id):
            if not (slot.occupied and slot.hold_expiry is not None and slot.hold_expiry < now):
                return False
            slot.occupied = False
            slot.hold_expiry = None
            slot.occupant_vehicle = None
            slot.occupant_user_id = None
            return True


def _to_state(row: ParkingSlot) -> SlotState:
    return SlotState(
        id=row.id,
        occupied=row.occupied,
        hold_expiry=row.hold_expiry,
        occupant_vehicle=row.occupant_vehicle,
        occupant_user_id=row.occupant_user_id,
    )


_FREE = dict(occupied=False, hold_expiry=None, occupant_vehicle=None, occupant_user_id=None)


class SqlSlotStore(SlotStore):

    def _execute(self, stmt) -> int:
        try:
            result = db.session.execute(stmt)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return result.rowcount

    def initialize(self, count):
        existing = set(db.session.execute(select(ParkingSlot.id)).scalars())
        for slot_id in range(1, count + 1):
            if slot_id not in existing:
                db.session.add(ParkingSlot(id=slot_id, **_FREE))
        db.session.commit()

    def get(self, slot_id):
        row = db.session.get(ParkingSlot, slot_id)
        return _to_state(row) if row else None

    def list(self):
        rows = db.session.execute(select(ParkingSlot).order_by(ParkingSlot.id.asc())).scalars()
        return [_to_state(r) for r in rows]

    def try_acquire(self, slot_id, expiry, vehicle, user_id):
        stmt = (
            update(ParkingSlot)
            .where(ParkingSlot.id == slot_id, ParkingSlot.occupied.is_(False))
            .values(occupied=True, hold_expiry=expiry, occupant_vehicle=vehicle, occupant_user_id=user_id)
            .execution_options(synchronize_session=False)
        )
        return self._execute(stmt) == 1

    def release(self, slot_id):
        stmt = (
            update(ParkingSlot)
            .where(ParkingSlot.id == slot_id, ParkingSlot.occupied.is_(True))
            .values(**_FREE)
            .execution_options(synchronize_session=False)
        )
        if self._execute(stmt) == 1:
            return True

        # already free: clear any leftover occupant fields anyway
        self._execute(
            update(ParkingSlot)
            .where(ParkingSlot.id == slot_id)
            .values(**_FREE)
            .execution_options(synchronize_session=False)
        )
        return False

    def release_expired(self, slot_id, now):
        # a slot re-booked since the caller looked has a later hold_expiry and is left alone
        stmt = (
            update(ParkingSlot)
            .where(
                ParkingSlot.id == slot_id,
                ParkingSlot.occupied.is_(True),
                ParkingSlot.hold_expiry < now,
            )
            .values(**_FREE)
            .execution_options(synchronize_session=False)
        )
        return self._execute(stmt) == 1
