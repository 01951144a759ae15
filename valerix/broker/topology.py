import logging
import time

import pika

from valerix import config

logger = logging.getLogger("broker.topology")


def connection_params() -> pika.ConnectionParameters:
    credentials = pika.PlainCredentials(config.RABBITMQ_USER, config.RABBITMQ_PASSWORD)
    return pika.ConnectionParameters(
        host=config.RABBITMQ_HOST, port=config.RABBITMQ_PORT,
        virtual_host=config.RABBITMQ_VHOST, credentials=credentials,
    )


def connect_with_retry(max_retries=15, delay=2) -> pika.BlockingConnection:
    params = connection_params()
    for attempt in range(1, max_retries + 1):
        try:
            return pika.BlockingConnection(params)
        except pika.exceptions.AMQPConnectionError:
            logger.warning("RabbitMQ not ready, retry %d/%d", attempt, max_retries)
            time.sleep(delay)
    raise RuntimeError("Could not connect to RabbitMQ")


def declare_verification_queue(channel) -> None:
    # Dead Letter Exchange & Queue
    channel.exchange_declare(exchange=config.DLX_EXCHANGE, exchange_type="fanout", durable=True)
    channel.queue_declare(queue=config.DLQ_QUEUE, durable=True)
    channel.queue_bind(queue=config.DLQ_QUEUE, exchange=config.DLX_EXCHANGE)

    channel.exchange_declare(
        exchange=config.VERIFY_EXCHANGE, exchange_type=config.VERIFY_EXCHANGE_TYPE, durable=True
    )

    # Quorum queue: the broker dead-letters a message once it has been
    # redelivered more than the delivery limit.
    channel.queue_declare(
        queue=config.VERIFY_QUEUE,
        durable=True,
        arguments={
            "x-queue-type": "quorum",
            "x-dead-letter-exchange": config.DLX_EXCHANGE,
            "x-delivery-limit": config.VERIFY_DELIVERY_LIMIT,
        },
    )
    channel.queue_bind(
        queue=config.VERIFY_QUEUE, exchange=config.VERIFY_EXCHANGE,
        routing_key=config.VERIFY_ROUTING_KEY,
    )


def setup_infrastructure() -> None:
    connection = connect_with_retry()
    try:
        declare_verification_queue(connection.channel())
    finally:
        connection.close()
    logger.info(
        "Queue '%s' <- '%s' (DLX '%s' -> '%s') ready",
        config.VERIFY_QUEUE, config.VERIFY_ROUTING_KEY, config.DLX_EXCHANGE, config.DLQ_QUEUE,
    )


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    setup_infrastructure()
