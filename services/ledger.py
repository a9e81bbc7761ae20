"""
Booking Ledger: every booking ever made and its lifecycle status.

Rows are appended and status-transitioned, never deleted. `transition` is a
compare-and-swap on the status column: it only succeeds while the booking is
still in `from_status`, so two resolutions racing on the same booking cannot
both win.
"""
import itertools
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import Booking
from services.records import (
    ACTIVE, BOOKING_STATUSES, CANCELLED, REFUND_APPROVED, REFUND_NONE,
    REFUND_PENDING, BookingRecord,
)


class BookingLedger(ABC):

    @abstractmethod
    def append(self, record: BookingRecord) -> int:
        """Store a new booking; sets and returns its id."""

    @abstractmethod
    def get(self, booking_id: int) -> Optional[BookingRecord]:
        pass

    @abstractmethod
    def find_active(self, user_id: int, slot_id: int) -> Optional[BookingRecord]:
        pass

    @abstractmethod
    def find_active_for_slot(self, slot_id: int) -> Optional[BookingRecord]:
        pass

    @abstractmethod
    def transition(self, booking_id: int, from_status: str, to_status: str, at: datetime) -> bool:
        pass

    @abstractmethod
    def approve_refund(self, booking_id: int, amount: int, actor: Optional[str], at: datetime) -> bool:
        pass

    @abstractmethod
    def list(self, status: Optional[str] = None, user_id: Optional[int] = None,
             limit: Optional[int] = None) -> List[BookingRecord]:
        """Newest first."""

    @abstractmethod
    def count_by_status(self) -> Dict[str, int]:
        pass

    @abstractmethod
    def active_revenue(self) -> int:
        pass

    def count_pending_refunds(self) -> int:
        return sum(1 for b in self.list(status=CANCELLED) if b.refund_status == REFUND_PENDING)


def _transition_values(to_status, at):
    values = {"status": to_status, "resolved_at": at}
    # a user cancellation opens a refund request
    if to_status == CANCELLED:
        values["refund_status"] = REFUND_PENDING
    return values


class MemoryBookingLedger(BookingLedger):

    def __init__(self):
        self._lock = threading.Lock()
        self._rows = {}
        self._ids = itertools.count(1)

    def append(self, record):
        with self._lock:
            record.id = next(self._ids)
            self._rows[record.id] = record.copy()
            return record.id

    def get(self, booking_id):
        with self._lock:
            row = self._rows.get(booking_id)
            return row.copy() if row else None

    def _first(self, predicate):
        with self._lock:
            for row in sorted(self._rows.values(), key=lambda r: r.id, reverse=True):
                if predicate(row):
                    return row.copy()
        return None

    def find_active(self, user_id, slot_id):
        return self._first(lambda r: r.status == ACTIVE and r.user_id == user_id and r.slot_id == slot_id)

    def find_active_for_slot(self, slot_id):
        return self._first(lambda r: r.status == ACTIVE and r.slot_id == slot_id)

    def transition(self, booking_id, from_status, to_status, at):
        with self._lock:
            row = self._rows.get(booking_id)
            if row is None or row.status != from_status:
                return False
            for key, value in _transition_values(to_status, at).items():
                setattr(row, key, value)
            return True

    def approve_refund(self, booking_id, amount, actor, at):
        with self._lock:
            row = self._rows.get(booking_id)
            if row is None:
                return False
            row.refund_status = REFUND_APPROVED
            row.refund_amount = amount
            row.refund_approved_at = at
            row.refund_approved_by = actor
            return True

    def list(self, status=None, user_id=None, limit=None):
        with self._lock:
            rows = [
                r.copy() for r in self._rows.values()
                if (status is None or r.status == status)
                and (user_id is None or r.user_id == user_id)
            ]
        rows.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return rows[:limit] if limit else rows

    def count_by_status(self):
        counts = dict.fromkeys(BOOKING_STATUSES, 0)
        with self._lock:
            for r in self._rows.values():
                counts[r.status] = counts.get(r.status, 0) + 1
        return counts

    def active_revenue(self):
        with self._lock:
            return sum(r.amount for r in self._rows.values() if r.status == ACTIVE)


def _to_record(row: Booking) -> BookingRecord:
    return BookingRecord(
        id=row.id,
        user_id=row.user_id,
        slot_id=row.slot_id,
        vehicle=row.vehicle,
        duration_hours=row.duration_hours,
        amount=row.amount,
        hold_expiry=row.hold_expiry,
        created_at=row.created_at,
        status=row.status,
        resolved_at=row.resolved_at,
        payment_status=row.payment_status,
        payment_reference=row.payment_reference,
        refund_status=row.refund_status,
        refund_amount=row.refund_amount,
        refund_approved_at=row.refund_approved_at,
        refund_approved_by=row.refund_approved_by,
    )


class SqlBookingLedger(BookingLedger):

    def _execute(self, stmt) -> int:
        try:
            result = db.session.execute(stmt.execution_options(synchronize_session=False))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return result.rowcount

    def append(self, record):
        row = Booking(
            user_id=record.user_id,
            slot_id=record.slot_id,
            vehicle=record.vehicle,
            duration_hours=record.duration_hours,
            amount=record.amount,
            status=record.status,
            created_at=record.created_at,
            hold_expiry=record.hold_expiry,
            payment_status=record.payment_status,
            payment_reference=record.payment_reference,
            refund_status=record.refund_status or REFUND_NONE,
        )
        db.session.add(row)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        record.id = row.id
        return row.id

    def get(self, booking_id):
        row = db.session.get(Booking, booking_id)
        return _to_record(row) if row else None

    def _first(self, *criteria):
        row = (
            db.session.execute(
                select(Booking).where(*criteria).order_by(Booking.id.desc()).limit(1)
            )
            .scalars()
            .first()
        )
        return _to_record(row) if row else None

    def find_active(self, user_id, slot_id):
        return self._first(Booking.status == ACTIVE, Booking.user_id == user_id, Booking.slot_id == slot_id)

    def find_active_for_slot(self, slot_id):
        return self._first(Booking.status == ACTIVE, Booking.slot_id == slot_id)

    def transition(self, booking_id, from_status, to_status, at):
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == from_status)
            .values(**_transition_values(to_status, at))
        )
        return self._execute(stmt) == 1

    def approve_refund(self, booking_id, amount, actor, at):
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .values(
                refund_status=REFUND_APPROVED,
                refund_amount=amount,
                refund_approved_at=at,
                refund_approved_by=actor,
            )
        )
        return self._execute(stmt) == 1

    def list(self, status=None, user_id=None, limit=None):
        q = select(Booking)
        if status:
            q = q.where(Booking.status == status)
        if user_id is not None:
            q = q.where(Booking.user_id == user_id)
        q = q.order_by(Booking.created_at.desc(), Booking.id.desc())
        if limit:
            q = q.limit(limit)
        return [_to_record(r) for r in db.session.execute(q).scalars()]

    def count_by_status(self):
        counts = dict.fromkeys(BOOKING_STATUSES, 0)
        rows = db.session.execute(
            select(Booking.status, func.count(Booking.id)).group_by(Booking.status)
        )
        for status, count in rows:
            counts[status] = count
        return counts

    def active_revenue(self):
        total = db.session.execute(
            select(func.coalesce(func.sum(Booking.amount), 0)).where(Booking.status == ACTIVE)
        ).scalar()
        return int(total or 0)

    def count_pending_refunds(self):
        return db.session.execute(
            select(func.count(Booking.id)).where(
                Booking.status == CANCELLED, Booking.refund_status == REFUND_PENDING
            )
        ).scalar()
