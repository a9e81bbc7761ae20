from services.ledger import BookingLedger, MemoryBookingLedger, SqlBookingLedger
from services.slot_store import MemorySlotStore, SlotStore, SqlSlotStore


class Store:
    """Slot Store and Booking Ledger that live in the same backing storage."""

    backend = None

    def __init__(self, slots: SlotStore, ledger: BookingLedger):
        self.slots = slots
        self.ledger = ledger


class MemoryStore(Store):
    """Process-local storage, lost on restart. For development without a database."""

    backend = "memory"

    def __init__(self):
        super().__init__(MemorySlotStore(), MemoryBookingLedger())


class SqlStore(Store):
    """Storage in the application database; needs an app context."""

    backend = "sql"

    def __init__(self):
        super().__init__(SqlSlotStore(), SqlBookingLedger())


BACKENDS = {
    MemoryStore.backend: MemoryStore,
    SqlStore.backend: SqlStore,
}


def build_store(backend: str) -> Store:
    try:
        return BACKENDS[backend]()
    except KeyError:
        raise ValueError(f"Unknown STORE_BACKEND {backend!r}, expected one of {sorted(BACKENDS)}")
