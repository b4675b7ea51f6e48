import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from django.conf import settings
from django.utils import timezone

from .exceptions import OrderError
from .models import ORDERS_COLLECTION, SCHEDULED_DELETIONS_COLLECTION

logger = logging.getLogger(__name__)


class DeletionQueue:
    """
    Delayed deletion of delivered orders.

    Each pending deletion is a document in `scheduled_deletions`, keyed by the
    order id, so it outlives a process restart. `run_due()` is driven by the
    JobRunner. A deletion that fails is logged and dropped; the daily purge
    removes the survivor.
    """

    def __init__(self, store, delay_seconds: Optional[float] = None,
                 clock: Callable[[], datetime] = timezone.now):
        self.store = store
        if delay_seconds is None:
            delay_seconds = settings.ORDER_AUTO_DELETE_DELAY_SECONDS
        self.delay = timedelta(seconds=delay_seconds)
        self.now = clock

    def schedule(self, order_id: str, now: Optional[datetime] = None) -> datetime:
        due_at = (now or self.now()) + self.delay
        self.store.set(SCHEDULED_DELETIONS_COLLECTION, order_id, {
            "orderId": order_id,
            "dueAt": due_at,
        })
        logger.info(f"Order {order_id} will be deleted at {due_at.isoformat()}.")
        return due_at

    def pending(self) -> List[Tuple[str, datetime]]:
        rows = self.store.query(SCHEDULED_DELETIONS_COLLECTION, order_by='dueAt')
        return [(data.get('orderId', job_id), data['dueAt']) for job_id, data in rows]

    def run_due(self, now: Optional[datetime] = None) -> int:
        """Deletes every order whose deletion is due. Returns how many were deleted."""
        now = now or self.now()
        due = self.store.query(SCHEDULED_DELETIONS_COLLECTION, [('dueAt', '<=', now)])
        deleted = 0
        for job_id, data in due:
            order_id = data.get('orderId', job_id)
            try:
                self.store.delete(ORDERS_COLLECTION, order_id)
                deleted += 1
                logger.info(f"Auto-deleted delivered order {order_id}.")
            except OrderError as e:
                logger.error(f"Error auto-removing delivered order {order_id}: {e}")
            try:
                self.store.delete(SCHEDULED_DELETIONS_COLLECTION, job_id)
            except OrderError as e:
                logger.error(f"Could not clear deletion record for order {order_id}: {e}")
        return deleted

    def clear(self) -> int:
        rows = self.store.query(SCHEDULED_DELETIONS_COLLECTION)
        return self.store.delete_many(SCHEDULED_DELETIONS_COLLECTION, [job_id for job_id, _ in rows])
