import threading
from contextlib import contextmanager


class SlotLocks:
    """One lock per slot id, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def _lock_for(self, slot_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(slot_id)
            if lock is None:
                lock = self._locks[slot_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, slot_id: int):
        lock = self._lock_for(slot_id)
        with lock:
            yield
