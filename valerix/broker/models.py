import json
from dataclasses import dataclass

from valerix.common.models import OrderRequest, validate_order


class MalformedMessage(ValueError):
    pass


@dataclass
class VerifyOrderMessage:
    order_id: str
    item_id: str
    quantity: int

    def to_json(self) -> str:
        return json.dumps({
            "orderId": self.order_id,
            "itemId": self.item_id,
            "quantity": self.quantity,
        })

    @classmethod
    def from_json(cls, data) -> "VerifyOrderMessage":
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            d = json.loads(data)
        except json.JSONDecodeError as exc:
            raise MalformedMessage(f"invalid JSON: {exc}") from exc
        if not isinstance(d, dict):
            raise MalformedMessage("message body must be a JSON object")

        order_id = d.get("orderId")
        if not order_id or not isinstance(order_id, str):
            raise MalformedMessage("missing orderId")
        error = validate_order(d.get("itemId"), d.get("quantity"))
        if error:
            raise MalformedMessage(error)
        return cls(order_id=order_id, item_id=d["itemId"], quantity=d["quantity"])

    @classmethod
    def from_order(cls, order: OrderRequest) -> "VerifyOrderMessage":
        return cls(order_id=order.order_id, item_id=order.item_id, quantity=order.quantity)

    def to_order(self) -> OrderRequest:
        return OrderRequest(item_id=self.item_id, quantity=self.quantity, order_id=self.order_id)
