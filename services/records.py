"""
Plain snapshots of slot and booking state.

Both store implementations hand these out instead of live objects, so a
caller can never mutate occupancy or ledger state behind the store's back.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

ACTIVE = "active"
CANCELLED = "cancelled"
RELEASED = "released"
EXPIRED = "expired"
BOOKING_STATUSES = (ACTIVE, CANCELLED, RELEASED, EXPIRED)

REFUND_NONE = "none"
REFUND_PENDING = "pending"
REFUND_APPROVED = "approved"


@dataclass
class SlotState:
    id: int
    occupied: bool = False
    hold_expiry: Optional[datetime] = None
    occupant_vehicle: Optional[str] = None
    occupant_user_id: Optional[int] = None

    def is_expired(self, now: datetime) -> bool:
        return self.occupied and self.hold_expiry is not None and self.hold_expiry < now

    def to_dict(self):
        return {
            "id": self.id,
            "booked": self.occupied,
            "endTime": self.hold_expiry.isoformat() if self.hold_expiry else None,
            "registrationNumber": self.occupant_vehicle,
            "userId": self.occupant_user_id,
        }


@dataclass
class BookingRecord:
    user_id: int
    slot_id: int
    vehicle: str
    duration_hours: int
    amount: int
    hold_expiry: datetime
    created_at: datetime
    status: str = ACTIVE
    id: Optional[int] = None
    resolved_at: Optional[datetime] = None
    payment_status: str = "completed"
    payment_reference: Optional[str] = None
    refund_status: str = REFUND_NONE
    refund_amount: Optional[int] = None
    refund_approved_at: Optional[datetime] = None
    refund_approved_by: Optional[str] = None

    def copy(self) -> "BookingRecord":
        return replace(self)

    def to_dict(self):
        def _iso(value):
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "userId": self.user_id,
            "slot": self.slot_id,
            "registrationNumber": self.vehicle,
            "hours": self.duration_hours,
            "amount": self.amount,
            "status": self.status,
            "paymentStatus": self.payment_status,
            "bookedTime": _iso(self.created_at),
            "endTime": _iso(self.hold_expiry),
            "resolvedAt": _iso(self.resolved_at),
            "refundStatus": self.refund_status,
            "refundAmount": self.refund_amount,
            "refundApprovedAt": _iso(self.refund_approved_at),
        }
