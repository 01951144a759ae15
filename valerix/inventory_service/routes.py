from fastapi import APIRouter, HTTPException, Request

from valerix.common.models import ErrorCode, OrderRequest

from valerix.inventory_service.models import (
    GremlinRequest,
    ReserveRequest,
    ReserveResponse,
    SchrodingerRequest,
)

router = APIRouter()

STATUS_BY_CODE = {
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.FAILED_PRECONDITION: 409,
    ErrorCode.INTERNAL: 500,
}


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.post("/reserve", response_model=ReserveResponse)
def reserve_item(payload: ReserveRequest, request: Request) -> ReserveResponse:
    # Sync def: FastAPI runs it on the thread pool, so injected latency
    # blocks only this request.
    order = OrderRequest(item_id=payload.item_id, quantity=payload.quantity, order_id=payload.order_id)
    result = request.app.state.reservation_service.reserve(order)
    if not result.ok:
        raise HTTPException(status_code=STATUS_BY_CODE.get(result.code, 500), detail=result.message)

    return ReserveResponse(
        transaction_id=result.transaction_id,
        order_id=result.order_id,
        item_id=payload.item_id,
        quantity=payload.quantity,
        duplicate=result.duplicate,
    )


@router.get("/inventory")
def list_inventory(request: Request) -> dict:
    return request.app.state.ledger.inventory()


@router.get("/inventory/{item_id}")
def get_item(item_id: str, request: Request) -> dict:
    stock = request.app.state.ledger.stock(item_id)
    if stock is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return {"itemId": item_id, "stock": stock}


@router.get("/ledger/{order_id}")
def get_ledger_entry(order_id: str, request: Request) -> dict:
    entry = request.app.state.ledger.get(order_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="No ledger entry for order")
    return entry.to_dict()


@router.get("/chaos/status")
def chaos_status(request: Request) -> dict:
    return {"success": True, "data": request.app.state.chaos.snapshot().to_dict()}


@router.post("/chaos/gremlin")
def set_gremlin(payload: GremlinRequest, request: Request) -> dict:
    try:
        settings = request.app.state.chaos.set_latency(
            payload.enabled, payload.min_latency_ms, payload.max_latency_ms
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"success": True, "data": settings.to_dict()}


@router.post("/chaos/schrodinger")
def set_schrodinger(payload: SchrodingerRequest, request: Request) -> dict:
    try:
        settings = request.app.state.chaos.set_crash(payload.enabled, payload.probability)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"success": True, "data": settings.to_dict()}
