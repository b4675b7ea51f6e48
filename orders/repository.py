import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from django.utils import timezone

from . import state_machine
from .deletions import DeletionQueue
from .exceptions import NotFound, ValidationError
from .models import ORDERS_COLLECTION, Order, OrderInput, OrderStatus, generate_order_number
from .store import DocumentStore, Unsubscribe, get_document_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderFilter:
    """
    Selects orders for a listing or a live subscription.

    customer_id, status and created_after are evaluated by the document store.
    exclude_status is applied after the query, which keeps the admin board's
    "not delivered" view free of an extra composite index.
    """

    customer_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    exclude_status: Optional[OrderStatus] = None
    created_after: Optional[datetime] = None

    @classmethod
    def today(cls, **kwargs):
        start_of_today = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)
        return cls(created_after=start_of_today, **kwargs)

    def store_filters(self):
        filters = []
        if self.customer_id:
            filters.append(('userId', '==', self.customer_id))
        if self.status:
            filters.append(('status', '==', OrderStatus(self.status).value))
        if self.created_after:
            filters.append(('createdAt', '>=', self.created_after))
        return filters

    def accepts(self, order: Order) -> bool:
        return self.exclude_status is None or order.status != self.exclude_status


class OrderRepository:
    """
    Order persistence over a DocumentStore.

    Every call is a round trip to the store; failures surface as
    RemoteUnavailable and are not retried here.
    """

    def __init__(self, store: Optional[DocumentStore] = None,
                 deletions: Optional[DeletionQueue] = None,
                 clock: Callable[[], datetime] = timezone.now):
        self.store = store or get_document_store()
        self.deletions = deletions or DeletionQueue(self.store, clock=clock)
        self.now = clock

    def create(self, order_input) -> Order:
        if not isinstance(order_input, OrderInput):
            order_input = OrderInput.from_payload(order_input)

        now = self.now()
        order = Order(
            id="",
            customer_id=order_input.customer_id,
            items=list(order_input.items),
            total_price=order_input.total_price,
            delivery=order_input.delivery,
            status=OrderStatus.PLACED,
            created_at=now,
            updated_at=now,
            order_number=generate_order_number(),
        )
        order_id = self.store.add(ORDERS_COLLECTION, order.to_document())
        logger.info(
            f"Created order {order_id} (#{order.order_number}) for user {order.customer_id} "
            f"with {len(order.items)} items, total {order.total_price}."
        )
        return Order.from_document(order_id, order.to_document())

    def get(self, order_id: str) -> Order:
        data = self.store.get(ORDERS_COLLECTION, order_id)
        if data is None:
            raise NotFound(f"Order {order_id} not found.")
        return Order.from_document(order_id, data)

    def list_by_customer(self, customer_id: str) -> List[Order]:
        return self.list_all(OrderFilter(customer_id=customer_id))

    def list_all(self, order_filter: Optional[OrderFilter] = None) -> List[Order]:
        order_filter = order_filter or OrderFilter()
        rows = self.store.query(
            ORDERS_COLLECTION, order_filter.store_filters(), order_by='createdAt', descending=True
        )
        return self._to_orders(rows, order_filter)

    def update_status(self, order_id: str, new_status, operator: Optional[str] = None) -> Order:
        return state_machine.advance(self, order_id, new_status, operator=operator)

    def save_status(self, order_id: str, status: OrderStatus, updated_at: datetime) -> None:
        self.store.update(ORDERS_COLLECTION, order_id, {
            "status": status.value,
            "updatedAt": updated_at,
        })

    def delete(self, order_id: str) -> None:
        self.store.delete(ORDERS_COLLECTION, order_id)
        logger.info(f"Deleted order {order_id}.")

    def subscribe(self, order_filter: Optional[OrderFilter],
                  callback: Callable[[List[Order]], None]) -> Unsubscribe:
        """
        Registers a live query. `callback` receives the entire current matching
        result set right away and again after every change to it.
        The returned handle detaches the listener.
        """
        order_filter = order_filter or OrderFilter()

        def on_snapshot(rows):
            try:
                callback(self._to_orders(rows, order_filter))
            except Exception:
                # One failing consumer must not break the writer or other feeds.
                logger.exception(f"Order subscription callback failed for {order_filter}.")

        return self.store.subscribe(
            ORDERS_COLLECTION, order_filter.store_filters(), 'createdAt', True, on_snapshot
        )

    @staticmethod
    def _to_orders(rows, order_filter):
        orders = []
        for order_id, data in rows:
            try:
                order = Order.from_document(order_id, data)
            except (ValidationError, TypeError, ValueError, AttributeError) as e:
                # Malformed documents are logged and left out.
                logger.warning(f"Skipping unreadable order document {order_id}: {e}")
                continue
            if order_filter.accepts(order):
                orders.append(order)
        return orders
