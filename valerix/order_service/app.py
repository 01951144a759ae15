import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from valerix import config
from valerix.broker.publisher import create_publisher
from valerix.common.http import install_error_handlers
from valerix.order_service.client import HttpInventoryClient
from valerix.order_service.coordinator import OrderCoordinator
from valerix.order_service.routes import router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("order.app")


def create_app(coordinator: OrderCoordinator | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        publisher = client = None
        if coordinator is None:
            publisher = create_publisher()
            client = HttpInventoryClient()
            app.state.coordinator = OrderCoordinator(client, publisher)
        else:
            app.state.coordinator = coordinator
        logger.info(
            "Inventory at %s, deadline %dms, queue backend %s",
            config.INVENTORY_URL, app.state.coordinator.deadline_ms, config.QUEUE_BACKEND,
        )
        try:
            yield
        finally:
            if client is not None:
                client.close()
            if publisher is not None:
                publisher.close()

    app = FastAPI(title="OrderService", lifespan=lifespan)
    install_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
