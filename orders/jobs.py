"""
Background jobs for the orders collection.

- Daily purge: once a day at ORDER_PURGE_TIME (local time) every order is
  deleted, whatever its status.
- Delayed deletion: delivered orders are removed once their scheduled
  deletion falls due (see DeletionQueue).

JobRunner drives both from a single daemon thread.
"""
import logging
import threading
from datetime import datetime, time, timedelta
from typing import Callable, Optional

from django.conf import settings
from django.utils import timezone

from .deletions import DeletionQueue
from .models import ORDERS_COLLECTION
from .store import get_document_store

logger = logging.getLogger(__name__)


def purge_all_orders(store=None) -> int:
    """
    Deletes every document in the orders collection and any pending
    deletion records. Returns the number of orders deleted.

    A failure part-way is not retried; the next run catches the survivors.
    """
    store = store or get_document_store()
    logger.info("Running scheduled job: deleting all orders...")

    rows = store.query(ORDERS_COLLECTION)
    if not rows:
        logger.info("No orders to delete.")
        return 0

    deleted = store.delete_many(ORDERS_COLLECTION, [order_id for order_id, _ in rows])
    logger.info(f"Successfully deleted {deleted} orders.")

    cleared = DeletionQueue(store).clear()
    if cleared:
        logger.info(f"Cleared {cleared} pending deletion records.")
    return deleted


def parse_purge_time(value: str) -> time:
    try:
        hour, minute = (int(part) for part in value.split(':'))
        return time(hour=hour, minute=minute)
    except ValueError:
        raise ValueError(f"ORDER_PURGE_TIME must look like HH:MM, got {value!r}")


def next_daily_run(now: datetime, at: time) -> datetime:
    """The first local wall-clock instant at `at` strictly after `now`."""
    local_now = timezone.localtime(now)
    candidate = local_now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if candidate <= local_now:
        candidate += timedelta(days=1)
    return candidate


class JobRunner:
    """
    Runs due deletions on every tick and the purge once a day.

    Errors from a tick are logged and the loop carries on; nothing is retried
    within the tick.
    """

    def __init__(self, store=None, poll_seconds: Optional[float] = None,
                 purge_at: Optional[time] = None,
                 clock: Callable[[], datetime] = timezone.now):
        self.store = store or get_document_store()
        self.deletions = DeletionQueue(self.store, clock=clock)
        self.poll_seconds = poll_seconds if poll_seconds is not None else settings.ORDER_JOBS_POLL_SECONDS
        self.purge_at = purge_at or parse_purge_time(settings.ORDER_PURGE_TIME)
        self.now = clock
        self.next_purge = next_daily_run(self.now(), self.purge_at)

        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name="order-jobs", daemon=True)

    def start(self) -> None:
        logger.info(f"Order jobs started; next purge at {self.next_purge.isoformat()}.")
        self._thread.start()

    def stop(self, join: bool = True) -> None:
        self._stop_event.set()
        if join and self._thread.is_alive():
            self._thread.join()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def run_once(self, now: Optional[datetime] = None) -> dict:
        """One tick. Returns the counts of auto-deleted and purged orders."""
        now = now or self.now()
        result = {"auto_deleted": self.deletions.run_due(now), "purged": None}
        if now >= self.next_purge:
            self.next_purge = next_daily_run(now, self.purge_at)
            result["purged"] = purge_all_orders(self.store)
            logger.info(f"Next purge at {self.next_purge.isoformat()}.")
        return result

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Order jobs tick failed.")
            self._stop_event.wait(self.poll_seconds)
        logger.info("Order jobs stopped.")
