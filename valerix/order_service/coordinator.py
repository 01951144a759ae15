import logging
import time

from valerix import config
from valerix.broker.models import VerifyOrderMessage
from valerix.common.ids import new_order_id
from valerix.common.models import (
    ErrorCode,
    OrderOutcome,
    OrderRequest,
    validate_order,
)

logger = logging.getLogger("order.coordinator")


class OrderCoordinator:
    """Reserve under a deadline, fall back to the verification queue.

    ``place_order`` returns exactly one OrderOutcome and publishes at most
    one message per call. There is no synchronous retry: a missed deadline
    is handed to the queue and reported as PENDING_VERIFICATION.
    """

    def __init__(self, inventory, publisher, deadline_ms: int | None = None):
        self.inventory = inventory
        self.publisher = publisher
        self.deadline_ms = deadline_ms if deadline_ms is not None else config.ORDER_DEADLINE_MS

    def place_order(self, request: OrderRequest) -> OrderOutcome:
        # The id is fixed here and reused by the sync call and the fallback message.
        order = request if request.order_id else request.with_order_id(new_order_id())

        error = validate_order(order.item_id, order.quantity)
        if error:
            return OrderOutcome.failed(order.order_id, ErrorCode.INVALID_ARGUMENT, error)

        started = time.monotonic()
        result = self.inventory.reserve(order, deadline_s=self.deadline_ms / 1000)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if result.ok:
            logger.info("CONFIRMED %s tx=%s in %dms", order.order_id, result.transaction_id, elapsed_ms)
            return OrderOutcome.confirmed(order.order_id, result.transaction_id)

        if result.code is ErrorCode.DEADLINE_EXCEEDED:
            logger.info(
                "Deadline of %dms exceeded for %s; queueing for verification",
                self.deadline_ms, order.order_id,
            )
            if not self.publisher.publish(VerifyOrderMessage.from_order(order)):
                return OrderOutcome.failed(
                    order.order_id,
                    ErrorCode.UNAVAILABLE,
                    "Inventory service is unavailable, and could not queue for verification.",
                )
            return OrderOutcome.pending(order.order_id)

        logger.warning("FAILED %s | %s: %s", order.order_id, result.code.value, result.message)
        return OrderOutcome.failed(order.order_id, result.code, result.message)
