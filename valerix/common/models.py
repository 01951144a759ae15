from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    NOT_FOUND = "NOT_FOUND"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    INTERNAL = "INTERNAL"
    UNAVAILABLE = "UNAVAILABLE"
    # Observed by the caller, never reported by the inventory service.
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"


class OrderStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    FAILED = "FAILED"


@dataclass(frozen=True)
class OrderRequest:
    item_id: str
    quantity: int
    order_id: Optional[str] = None

    def with_order_id(self, order_id: str) -> "OrderRequest":
        return replace(self, order_id=order_id)


@dataclass(frozen=True)
class LedgerEntry:
    order_id: str
    item_id: str
    quantity: int
    transaction_id: str
    created_at: str

    def to_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "itemId": self.item_id,
            "quantity": self.quantity,
            "transactionId": self.transaction_id,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class ReservationResult:
    """Return value of a reservation call: a transaction id or an error code."""

    transaction_id: Optional[str] = None
    code: Optional[ErrorCode] = None
    message: str = ""
    duplicate: bool = False
    order_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.code is None

    @classmethod
    def success(cls, transaction_id: str, order_id: Optional[str] = None,
                duplicate: bool = False) -> "ReservationResult":
        return cls(transaction_id=transaction_id, order_id=order_id, duplicate=duplicate)

    @classmethod
    def failure(cls, code: ErrorCode, message: str) -> "ReservationResult":
        return cls(code=code, message=message)


@dataclass(frozen=True)
class OrderOutcome:
    status: OrderStatus
    order_id: Optional[str]
    transaction_id: Optional[str] = None
    code: Optional[ErrorCode] = None
    message: str = ""

    @classmethod
    def confirmed(cls, order_id: str, transaction_id: str) -> "OrderOutcome":
        return cls(OrderStatus.CONFIRMED, order_id, transaction_id=transaction_id)

    @classmethod
    def pending(cls, order_id: str) -> "OrderOutcome":
        return cls(
            OrderStatus.PENDING_VERIFICATION,
            order_id,
            message="Order is being verified asynchronously.",
        )

    @classmethod
    def failed(cls, order_id: Optional[str], code: ErrorCode, message: str) -> "OrderOutcome":
        return cls(OrderStatus.FAILED, order_id, code=code, message=message)

    def to_dict(self) -> dict:
        body = {"status": self.status.value, "orderId": self.order_id}
        if self.transaction_id:
            body["transactionId"] = self.transaction_id
        if self.code:
            body["code"] = self.code.value
        if self.message:
            body["message"] = self.message
        return body


def validate_order(item_id, quantity) -> Optional[str]:
    """Return an error message for a bad request, or None when it is valid."""
    if not item_id or not isinstance(item_id, str):
        return "Invalid or missing itemId"
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        return "Invalid or missing quantity"
    return None
