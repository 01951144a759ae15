import logging

from valerix import config
from valerix.common import db as common_db
from valerix.inventory_service.chaos import ChaosConfig, FaultInjector
from valerix.inventory_service.consumer import AsyncVerificationConsumer, create_runner
from valerix.inventory_service.ledger import IdempotentLedger

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def main():
    """Run the verification consumer as its own process."""
    common_db.init_db()
    logger.info("Starting verification consumer backend=%s db=%s",
                config.QUEUE_BACKEND, common_db.get_db_path())
    # Chaos settings come from the environment only; there is no API here.
    faults = FaultInjector(ChaosConfig.from_env())
    consumer = AsyncVerificationConsumer(IdempotentLedger(), faults)
    create_runner(consumer).run()


if __name__ == "__main__":
    main()
