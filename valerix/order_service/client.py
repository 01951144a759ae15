"""Deadline-bound reservation calls.

Both clients block until the inventory service answers or the deadline
passes, and report the outcome as a ReservationResult. A missed deadline is
DEADLINE_EXCEEDED; the call itself is not cancelled and may still commit.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

import requests

from valerix import config
from valerix.common.models import ErrorCode, OrderRequest, ReservationResult

logger = logging.getLogger("order.inventory_client")

CODE_BY_STATUS = {
    400: ErrorCode.INVALID_ARGUMENT,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.FAILED_PRECONDITION,
}


class HttpInventoryClient:
    """POSTs to the inventory service's /reserve.

    ``requests`` applies its timeout to the connect and to each socket read,
    so the call runs on a worker thread and the deadline is enforced on the
    wall clock with ``future.result(timeout)``.
    """

    def __init__(self, base_url: str | None = None, max_workers: int = 16):
        self.base_url = (base_url or config.INVENTORY_URL).rstrip("/")
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="inventory-http")

    def reserve(self, order: OrderRequest, deadline_s: float) -> ReservationResult:
        payload = {
            "orderId": order.order_id,
            "itemId": order.item_id,
            "quantity": order.quantity,
        }
        future = self._executor.submit(
            requests.post, f"{self.base_url}/reserve", json=payload, timeout=deadline_s
        )
        try:
            resp = future.result(timeout=deadline_s)
        except FutureTimeout:
            return ReservationResult.failure(ErrorCode.DEADLINE_EXCEEDED, "Inventory deadline exceeded")
        except requests.ConnectTimeout:
            # Never reached the peer, so nothing can commit on the far side.
            return ReservationResult.failure(ErrorCode.UNAVAILABLE, "Inventory service unreachable")
        except requests.Timeout:
            return ReservationResult.failure(ErrorCode.DEADLINE_EXCEEDED, "Inventory deadline exceeded")
        except requests.RequestException as exc:
            logger.warning("Inventory call for %s failed: %s", order.order_id, exc)
            return ReservationResult.failure(
                ErrorCode.UNAVAILABLE, f"Error communicating with inventory service: {exc}"
            )

        if resp.status_code == 200:
            try:
                body = resp.json()
                return ReservationResult.success(
                    body["transactionId"], body.get("orderId"), duplicate=body.get("duplicate", False)
                )
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                logger.error("Unreadable reservation reply for %s: %s", order.order_id, exc)
                return ReservationResult.failure(
                    ErrorCode.INTERNAL, "Inventory returned an unreadable reservation"
                )

        try:
            message = resp.json().get("detail", "Inventory failed")
        except (ValueError, AttributeError):
            message = resp.text or "Inventory failed"
        return ReservationResult.failure(
            CODE_BY_STATUS.get(resp.status_code, ErrorCode.INTERNAL), str(message)
        )

    def close(self, wait: bool = False):
        self._executor.shutdown(wait=wait)


class LocalInventoryClient:
    """Calls an in-process InventoryReservationService on a worker thread."""

    def __init__(self, service, max_workers: int = 8):
        self.service = service
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reserve")

    def reserve(self, order: OrderRequest, deadline_s: float) -> ReservationResult:
        future = self._executor.submit(self.service.reserve, order)
        try:
            return future.result(timeout=deadline_s)
        except FutureTimeout:
            return ReservationResult.failure(ErrorCode.DEADLINE_EXCEEDED, "Inventory deadline exceeded")
        except Exception as exc:
            logger.exception("Local reservation for %s failed", order.order_id)
            return ReservationResult.failure(ErrorCode.INTERNAL, str(exc))

    def close(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
