from dataclasses import dataclass, field
from typing import Dict

from services.records import ACTIVE, BOOKING_STATUSES
from services.store import Store


@dataclass
class DashboardStats:
    total_users: int
    total_slots: int
    occupied_slots: int
    bookings_by_status: Dict[str, int] = field(default_factory=dict)
    total_revenue: int = 0
    pending_refunds: int = 0

    @property
    def available_slots(self) -> int:
        return self.total_slots - self.occupied_slots

    @property
    def occupancy(self) -> float:
        if not self.total_slots:
            return 0.0
        return self.occupied_slots / self.total_slots

    def to_dict(self):
        return {
            "totalUsers": self.total_users,
            "totalBookings": self.bookings_by_status.get(ACTIVE, 0),
            "totalRevenue": self.total_revenue,
            "occupancy": self.occupancy,
            "occupancyRate": round(self.occupancy * 100, 1),
            "activeBookings": self.occupied_slots,
            "availableSlots": self.available_slots,
            "totalSlots": self.total_slots,
            "bookingsByStatus": dict(self.bookings_by_status),
            "pendingRefunds": self.pending_refunds,
        }


class StatsAggregator:
    """Read-only projection over the Slot Store and Booking Ledger."""

    def __init__(self, store: Store):
        self.store = store

    def collect(self, total_users: int = 0) -> DashboardStats:
        slots = self.store.slots.list()
        counts = dict.fromkeys(BOOKING_STATUSES, 0)
        counts.update(self.store.ledger.count_by_status())
        return DashboardStats(
            total_users=total_users,
            total_slots=len(slots),
            occupied_slots=sum(1 for s in slots if s.occupied),
            bookings_by_status=counts,
            # revenue only counts bookings that are still active
            total_revenue=self.store.ledger.active_revenue(),
            pending_refunds=self.store.ledger.count_pending_refunds(),
        )
