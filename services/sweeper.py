import logging
import threading
from datetime import datetime
from typing import Optional

from services.booking_service import BookingService

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Frees slots whose hold has lapsed, every `interval` seconds.

    A failure on one slot is logged and skipped; the slot is picked up again
    on the next tick because it is still occupied and past its expiry.
    """

    def __init__(self, service: BookingService, interval: float = 1.0, app=None):
        self.service = service
        self.interval = interval
        self.app = app
        self._stop = threading.Event()
        self._start_lock = threading.Lock()
        self._thread = None

    def run_once(self, now: Optional[datetime] = None) -> int:
        now = now or self.service.now()
        expired = 0
        for slot_id in self.service.expired_slot_ids(now):
            try:
                if self.service.expire_slot(slot_id, now):
                    expired += 1
            except Exception:
                logger.exception("Could not expire slot %s, retrying next tick", slot_id)
        return expired

    def _tick(self):
        if self.app is None:
            return self.run_once()
        with self.app.app_context():
            return self.run_once()

    def _run(self):
        logger.info("Expiry sweeper started, interval %ss", self.interval)
        while not self._stop.wait(self.interval):
            try:
                self._tick()
            except Exception:
                logger.exception("Expiry sweep failed")
        logger.info("Expiry sweeper stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        with self._start_lock:
            if self.running:
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name="expiry-sweeper", daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
