import pytest

from orders.exceptions import InvalidTransition, NotFound, ValidationError
from orders.models import ORDERS_COLLECTION, OrderStatus
from orders.state_machine import advance, next_status
from tests.factories import build_payload


def test_next_status_walks_the_linear_sequence():
    seen = []
    status = OrderStatus.PLACED
    while status is not None:
        status = next_status(status)
        seen.append(status)
    assert seen == [
        OrderStatus.PREPARING,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        None,
    ]


def test_advance_to_preparing_refreshes_updated_at(repository, clock):
    order = repository.create(build_payload())
    clock.advance(5)

    updated = repository.update_status(order.id, OrderStatus.PREPARING)

    assert updated.status == OrderStatus.PREPARING
    assert updated.updated_at > order.updated_at
    assert updated.created_at == order.created_at
    stored = repository.get(order.id)
    assert stored.status == OrderStatus.PREPARING
    assert stored.updated_at == updated.updated_at


def test_updated_at_increases_even_without_clock_movement(repository):
    order = repository.create(build_payload())
    updated = repository.update_status(order.id, "Preparing")
    assert updated.updated_at > order.updated_at


def test_advance_without_target_moves_to_next_status(repository):
    order = repository.create(build_payload())
    assert advance(repository, order.id).status == OrderStatus.PREPARING


def test_skipping_a_status_is_rejected(repository):
    order = repository.create(build_payload())
    with pytest.raises(InvalidTransition):
        repository.update_status(order.id, OrderStatus.DELIVERED)
    assert repository.get(order.id).status == OrderStatus.PLACED


def test_moving_backwards_is_rejected(repository):
    order = repository.create(build_payload())
    repository.update_status(order.id, OrderStatus.PREPARING)
    with pytest.raises(InvalidTransition):
        repository.update_status(order.id, OrderStatus.PLACED)


def test_delivered_order_is_unchanged_by_further_advances(repository):
    order = repository.create(build_payload())
    for status in (OrderStatus.PREPARING, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED):
        repository.update_status(order.id, status)
    before = repository.get(order.id)

    with pytest.raises(InvalidTransition):
        repository.update_status(order.id, OrderStatus.DELIVERED)
    with pytest.raises(InvalidTransition):
        advance(repository, order.id)

    assert repository.get(order.id) == before


def test_unknown_order_is_not_found(repository):
    with pytest.raises(NotFound):
        repository.update_status("missing", OrderStatus.PREPARING)


def test_unknown_target_status_is_a_validation_error(repository):
    order = repository.create(build_payload())
    with pytest.raises(ValidationError):
        repository.update_status(order.id, "Cancelled")


def test_reaching_delivered_schedules_deletion(repository, clock):
    order = repository.create(build_payload())
    for status in (OrderStatus.PREPARING, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED):
        repository.update_status(order.id, status)

    pending = repository.deletions.pending()
    assert [order_id for order_id, _ in pending] == [order.id]
    assert pending[0][1] == clock() + repository.deletions.delay


def test_legacy_documents_can_be_advanced(repository, store, clock):
    store.set(ORDERS_COLLECTION, "legacy", {
        "userId": "user-9",
        "items": [{"name": "Coke", "price": 40, "qty": 1}],
        "totalPrice": 40,
        "userDetails": {"name": "Ravi", "phone": "1", "address": "Gate 1"},
        "status": "Out for Delivery",
        "createdAt": clock(),
        "updatedAt": clock(),
    })
    assert repository.update_status("legacy", "Delivered").status == OrderStatus.DELIVERED
    assert store.get(ORDERS_COLLECTION, "legacy")["status"] == "Delivered"


def test_delivered_result_reports_is_delivered(repository):
    order = repository.create(build_payload())
    for status in (OrderStatus.PREPARING, OrderStatus.OUT_FOR_DELIVERY):
        assert not repository.update_status(order.id, status).is_delivered
    assert repository.update_status(order.id, OrderStatus.DELIVERED).is_delivered
