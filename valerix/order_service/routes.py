import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from valerix.common import models as domain
from valerix.common.models import ErrorCode, OrderStatus

from valerix.order_service.models import ConfigRequest, OrderRequest

router = APIRouter()

FAILURE_STATUS = {
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.FAILED_PRECONDITION: 409,
    ErrorCode.UNAVAILABLE: 503,
}


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.post("/config")
def set_config(config: ConfigRequest, request: Request) -> dict:
    coordinator = request.app.state.coordinator
    if config.deadline_ms is not None:
        coordinator.deadline_ms = config.deadline_ms
    return {"deadlineMs": coordinator.deadline_ms}


@router.post("/orders")
def create_order(order: OrderRequest, request: Request) -> JSONResponse:
    started = time.time()
    outcome = request.app.state.coordinator.place_order(
        domain.OrderRequest(item_id=order.item_id, quantity=order.quantity, order_id=order.order_id)
    )

    if outcome.status is OrderStatus.CONFIRMED:
        status_code = 201
    elif outcome.status is OrderStatus.PENDING_VERIFICATION:
        # Accepted for processing, but not yet confirmed
        status_code = 202
    else:
        status_code = FAILURE_STATUS.get(outcome.code, 502)

    body = outcome.to_dict()
    body["latencyMs"] = int((time.time() - started) * 1000)
    return JSONResponse(status_code=status_code, content=body)
