import time

import pytest

from conftest import FakeInventoryClient, RecordingPublisher
from valerix.common.models import ErrorCode, OrderRequest, OrderStatus, ReservationResult
from valerix.inventory_service.chaos import FaultInjector
from valerix.inventory_service.consumer import AsyncVerificationConsumer, Disposition
from valerix.inventory_service.reservation import InventoryReservationService
from valerix.order_service.client import LocalInventoryClient
from valerix.order_service.coordinator import OrderCoordinator


def test_success_is_confirmed():
    client = FakeInventoryClient(ReservationResult.success("tx-1"))
    publisher = RecordingPublisher()
    outcome = OrderCoordinator(client, publisher).place_order(OrderRequest("SKU-1", 1))

    assert outcome.status is OrderStatus.CONFIRMED
    assert outcome.transaction_id == "tx-1"
    assert publisher.messages == []


def test_deadline_enqueues_exactly_one_message_with_the_same_order_id():
    client = FakeInventoryClient(ReservationResult.failure(ErrorCode.DEADLINE_EXCEEDED, "late"))
    publisher = RecordingPublisher()
    outcome = OrderCoordinator(client, publisher).place_order(OrderRequest("SKU-1", 1))

    assert outcome.status is OrderStatus.PENDING_VERIFICATION
    assert len(publisher.messages) == 1
    sent_order, _ = client.calls[0]
    message = publisher.messages[0]
    assert message.order_id == sent_order.order_id == outcome.order_id
    assert (message.item_id, message.quantity) == ("SKU-1", 1)


def test_caller_supplied_order_id_is_kept():
    client = FakeInventoryClient(ReservationResult.failure(ErrorCode.DEADLINE_EXCEEDED, "late"))
    publisher = RecordingPublisher()
    outcome = OrderCoordinator(client, publisher).place_order(OrderRequest("SKU-1", 1, order_id="mine"))

    assert outcome.order_id == "mine"
    assert publisher.messages[0].order_id == "mine"


def test_generated_order_ids_are_unique():
    client = FakeInventoryClient(ReservationResult.failure(ErrorCode.DEADLINE_EXCEEDED, "late"))
    publisher = RecordingPublisher()
    coordinator = OrderCoordinator(client, publisher)
    for _ in range(5):
        coordinator.place_order(OrderRequest("SKU-1", 1))

    assert len({m.order_id for m in publisher.messages}) == 5


@pytest.mark.parametrize("code", [
    ErrorCode.INVALID_ARGUMENT,
    ErrorCode.NOT_FOUND,
    ErrorCode.FAILED_PRECONDITION,
    ErrorCode.INTERNAL,
    ErrorCode.UNAVAILABLE,
])
def test_other_errors_fail_without_enqueue(code):
    client = FakeInventoryClient(ReservationResult.failure(code, "nope"))
    publisher = RecordingPublisher()
    outcome = OrderCoordinator(client, publisher).place_order(OrderRequest("SKU-1", 1))

    assert outcome.status is OrderStatus.FAILED
    assert outcome.code is code
    assert outcome.message == "nope"
    assert publisher.messages == []
    assert len(client.calls) == 1


def test_invalid_request_never_reaches_inventory():
    client = FakeInventoryClient(ReservationResult.success("tx-1"))
    publisher = RecordingPublisher()
    outcome = OrderCoordinator(client, publisher).place_order(OrderRequest("SKU-1", 0))

    assert outcome.status is OrderStatus.FAILED
    assert outcome.code is ErrorCode.INVALID_ARGUMENT
    assert client.calls == []
    assert publisher.messages == []


def test_failed_enqueue_is_reported_unavailable():
    client = FakeInventoryClient(ReservationResult.failure(ErrorCode.DEADLINE_EXCEEDED, "late"))
    outcome = OrderCoordinator(client, RecordingPublisher(ok=False)).place_order(OrderRequest("SKU-1", 1))

    assert outcome.status is OrderStatus.FAILED
    assert outcome.code is ErrorCode.UNAVAILABLE


def test_deadline_is_passed_in_seconds():
    client = FakeInventoryClient(ReservationResult.success("tx-1"))
    OrderCoordinator(client, RecordingPublisher(), deadline_ms=1500).place_order(OrderRequest("SKU-1", 1))

    assert client.calls[0][1] == 1.5


class SlowService:
    def __init__(self, seconds):
        self.seconds = seconds

    def reserve(self, order):
        time.sleep(self.seconds)
        return ReservationResult.success("tx-late", order.order_id)


def test_pending_returned_at_the_deadline():
    client = LocalInventoryClient(SlowService(1.0))
    publisher = RecordingPublisher()
    coordinator = OrderCoordinator(client, publisher, deadline_ms=200)

    started = time.monotonic()
    outcome = coordinator.place_order(OrderRequest("SKU-1", 1))
    elapsed = time.monotonic() - started
    client.close(wait=False)

    assert outcome.status is OrderStatus.PENDING_VERIFICATION
    assert 0.19 <= elapsed < 0.6
    assert len(publisher.messages) == 1


def test_slow_gremlin_then_async_verification_decrements_once(ledger, chaos):
    """Reservation delayed past the deadline; the queued copy and the late
    synchronous call together decrement stock exactly once."""
    chaos.set_latency(True, 300, 400)
    service = InventoryReservationService(ledger, FaultInjector(chaos))
    client = LocalInventoryClient(service)
    publisher = RecordingPublisher()
    coordinator = OrderCoordinator(client, publisher, deadline_ms=200)

    started = time.monotonic()
    outcome = coordinator.place_order(OrderRequest("SKU-1", 1))
    elapsed = time.monotonic() - started

    assert outcome.status is OrderStatus.PENDING_VERIFICATION
    assert elapsed < 0.3
    assert len(publisher.messages) == 1

    consumer = AsyncVerificationConsumer(ledger, FaultInjector(chaos))
    assert consumer.process_message(publisher.messages[0].to_json()) is Disposition.ACK
    assert ledger.stock("SKU-1") == 99

    # Let the abandoned synchronous call finish on the far side.
    client.close(wait=True)
    assert ledger.stock("SKU-1") == 99
    assert ledger.count(outcome.order_id) == 1


def test_local_client_confirms_fast_reservations(service, ledger):
    client = LocalInventoryClient(service)
    outcome = OrderCoordinator(client, RecordingPublisher(), deadline_ms=2000).place_order(
        OrderRequest("SKU-3", 4)
    )
    client.close()

    assert outcome.status is OrderStatus.CONFIRMED
    assert ledger.get(outcome.order_id).transaction_id == outcome.transaction_id
    assert ledger.stock("SKU-3") == 46
