"""
Order status progression.

Placed -> Preparing -> OutForDelivery -> Delivered, strictly linear. An admin
may only move an order to the immediate next status; there is no skip,
rollback or cancellation. Reaching Delivered schedules the order's deletion.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from .exceptions import InvalidTransition, OrderError
from .models import Order, OrderStatus, parse_status

logger = logging.getLogger(__name__)

STATUS_SEQUENCE = (
    OrderStatus.PLACED,
    OrderStatus.PREPARING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)


def next_status(current) -> Optional[OrderStatus]:
    position = STATUS_SEQUENCE.index(parse_status(current))
    if position + 1 == len(STATUS_SEQUENCE):
        return None
    return STATUS_SEQUENCE[position + 1]


def _refreshed_timestamp(previous: Optional[datetime], now: datetime) -> datetime:
    # updatedAt must strictly increase even when the clock has not moved.
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def advance(repository, order_id: str, target=None, operator: Optional[str] = None) -> Order:
    """
    Moves an order to `target`, which must equal next_status(order.status).
    With no target the order moves to its next status.

    Raises NotFound for an unknown id and InvalidTransition (without writing
    anything) for any other target, including every change to a delivered order.
    """
    order = repository.get(order_id)
    expected = next_status(order.status)
    target = expected if target is None else parse_status(target)

    if expected is None or target != expected:
        logger.warning(
            f"Rejected status change for order {order.id}: {order.status.label} -> "
            f"{target.label if target else 'nothing'} (operator: {operator or 'unknown'})."
        )
        if expected is None:
            raise InvalidTransition(f"Order {order.id} is already {order.status.label}.")
        raise InvalidTransition(
            f"Order {order.id} can only move from {order.status.label} to {expected.label}."
        )

    updated_at = _refreshed_timestamp(order.updated_at, repository.now())
    repository.save_status(order.id, target, updated_at)
    logger.info(
        f"Order {order.id} moved {order.status.label} -> {target.label} "
        f"by {operator or 'unknown operator'}."
    )

    updated = order.with_status(target, updated_at)
    if updated.is_delivered:
        try:
            repository.deletions.schedule(order.id)
        except OrderError as e:
            # The daily purge still removes the order.
            logger.error(f"Could not schedule deletion of delivered order {order.id}: {e}")

    return updated
