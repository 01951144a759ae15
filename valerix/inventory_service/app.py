import logging
import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI

from valerix import config
from valerix.common import db as common_db
from valerix.common.http import install_error_handlers
from valerix.inventory_service.chaos import ChaosConfig, FaultInjector
from valerix.inventory_service.consumer import AsyncVerificationConsumer, create_runner
from valerix.inventory_service.ledger import IdempotentLedger
from valerix.inventory_service.reservation import InventoryReservationService
from valerix.inventory_service.routes import router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("inventory.app")


def create_app(db_path: str | None = None, chaos: ChaosConfig | None = None,
               start_consumer: bool | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        common_db.init_db(db_path)
        app.state.chaos = chaos or ChaosConfig.from_env()
        app.state.ledger = IdempotentLedger(db_path)
        # The consumer shares the injector, so a crash toggle reaches both paths.
        faults = FaultInjector(app.state.chaos)
        app.state.reservation_service = InventoryReservationService(app.state.ledger, faults)

        runner = None
        enabled = config.VERIFY_CONSUMER_ENABLED if start_consumer is None else start_consumer
        if enabled:
            runner = create_runner(AsyncVerificationConsumer(app.state.ledger, faults))
            threading.Thread(target=runner.run, name="verify-consumer", daemon=True).start()
            logger.info("Verification consumer started (%s)", config.QUEUE_BACKEND)
        try:
            yield
        finally:
            if runner is not None:
                runner.stop()

    app = FastAPI(title="InventoryService", lifespan=lifespan)
    install_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
