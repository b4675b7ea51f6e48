import logging
import threading
from typing import Callable, List, Optional

from .models import Order, OrderStatus
from .repository import OrderFilter, OrderRepository

logger = logging.getLogger(__name__)


class OrderFeed:
    """
    One consumer's live view over the orders collection.

    Each feed opens its own subscription and keeps its own copy of the last
    result set; feeds share nothing with each other. Every push replaces the
    view wholesale. Arrivals and status changes are found by diffing against
    the previous push, and no arrivals are reported for the initial load.

    Call close() (or leave the `with` block) when the view goes away.
    """

    def __init__(self, repository: OrderRepository, order_filter: Optional[OrderFilter] = None,
                 on_update: Optional[Callable[[List[Order]], None]] = None,
                 on_new_orders: Optional[Callable[[List[Order]], None]] = None,
                 on_status_change: Optional[Callable[[Order, OrderStatus], None]] = None):
        self.order_filter = order_filter or OrderFilter()
        self._on_update = on_update
        self._on_new_orders = on_new_orders
        self._on_status_change = on_status_change

        self._lock = threading.Lock()
        self._orders: List[Order] = []
        self._loaded = False
        self._unsubscribe = repository.subscribe(self.order_filter, self._on_snapshot)

    @property
    def orders(self) -> List[Order]:
        with self._lock:
            return list(self._orders)

    @property
    def loaded(self) -> bool:
        return self._loaded

    def _on_snapshot(self, orders: List[Order]) -> None:
        with self._lock:
            previous = {order.id: order for order in self._orders}
            initial_load = not self._loaded
            self._orders = list(orders)
            self._loaded = True

        arrivals = [] if initial_load else [o for o in orders if o.id not in previous]
        changes = [
            (order, previous[order.id].status)
            for order in orders
            if order.id in previous and previous[order.id].status != order.status
        ]

        if self._on_update:
            self._on_update(list(orders))
        if arrivals and self._on_new_orders:
            logger.info(f"{len(arrivals)} new order(s) for {self.order_filter}.")
            self._on_new_orders(arrivals)
        if self._on_status_change:
            for order, previous_status in changes:
                self._on_status_change(order, previous_status)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
