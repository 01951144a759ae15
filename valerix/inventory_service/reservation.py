import logging

from valerix.common.ids import new_order_id
from valerix.common.models import ErrorCode, OrderRequest, ReservationResult, validate_order
from valerix.inventory_service.chaos import FaultInjector, InjectedCrash
from valerix.inventory_service.ledger import (
    IdempotentLedger,
    InsufficientStockError,
    PersistenceError,
    UnknownItemError,
)

logger = logging.getLogger("inventory.reservation")


class InventoryReservationService:
    """Synchronous reservation entry point.

    Writes go through the same ledger as the verification consumer, so a
    late synchronous call and a queued retry of the same order id apply the
    decrement once between them.
    """

    def __init__(self, ledger: IdempotentLedger, faults: FaultInjector):
        self.ledger = ledger
        self.faults = faults

    def reserve(self, request: OrderRequest) -> ReservationResult:
        error = validate_order(request.item_id, request.quantity)
        if error:
            return ReservationResult.failure(ErrorCode.INVALID_ARGUMENT, error)
        if request.order_id is None:
            request = request.with_order_id(new_order_id())
        elif not isinstance(request.order_id, str) or not request.order_id:
            return ReservationResult.failure(ErrorCode.INVALID_ARGUMENT, "Invalid orderId")

        self.faults.delay()

        try:
            result = self.ledger.apply(request)
        except UnknownItemError as e:
            return ReservationResult.failure(ErrorCode.NOT_FOUND, str(e))
        except InsufficientStockError as e:
            return ReservationResult.failure(ErrorCode.FAILED_PRECONDITION, str(e))
        except PersistenceError:
            logger.exception("Error adjusting stock for %s", request.order_id)
            return ReservationResult.failure(ErrorCode.INTERNAL, "Failed to adjust stock")

        if not result.applied:
            logger.info("DUPLICATE reservation %s -> tx=%s", request.order_id, result.entry.transaction_id)
            return ReservationResult.success(
                result.entry.transaction_id, request.order_id, duplicate=True
            )

        try:
            self.faults.crash_after_commit(request.order_id)
        except InjectedCrash:
            # Stock is committed but the caller never sees the transaction id.
            return ReservationResult.failure(ErrorCode.INTERNAL, "Failed to adjust stock")
        return ReservationResult.success(result.entry.transaction_id, request.order_id)
