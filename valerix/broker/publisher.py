import logging
import threading

import pika
from confluent_kafka import Producer
from confluent_kafka.error import KafkaException

from valerix import config
from valerix.broker.models import VerifyOrderMessage
from valerix.broker.topology import connection_params, declare_verification_queue

logger = logging.getLogger("broker.publisher")


class RabbitPublisher:
    """Publishes verification messages with publisher confirms.

    A BlockingConnection is not thread-safe, and the order API serves
    requests from a thread pool, so every use goes through ``_lock``.
    """

    def __init__(self, params: pika.ConnectionParameters | None = None):
        self._params = params
        self._lock = threading.Lock()
        self.connection = None
        self.channel = None

    def _connect(self):
        self.connection = pika.BlockingConnection(self._params or connection_params())
        self.channel = self.connection.channel()
        declare_verification_queue(self.channel)
        self.channel.confirm_delivery()

    def _reset(self):
        try:
            if self.connection and self.connection.is_open:
                self.connection.close()
        except pika.exceptions.AMQPError:
            pass
        self.connection = None
        self.channel = None

    def publish(self, message: VerifyOrderMessage) -> bool:
        with self._lock:
            # One reconnect covers a connection the broker dropped while idle.
            for attempt in range(2):
                try:
                    if self.channel is None or self.channel.is_closed:
                        self._connect()
                    self.channel.basic_publish(
                        exchange=config.VERIFY_EXCHANGE,
                        routing_key=config.VERIFY_ROUTING_KEY,
                        body=message.to_json(),
                        properties=pika.BasicProperties(
                            delivery_mode=2,
                            content_type="application/json",
                            message_id=message.order_id,
                        ),
                        mandatory=True,
                    )
                    logger.info("ENQUEUED %s for verification", message.order_id)
                    return True
                except pika.exceptions.AMQPError as e:
                    logger.warning(
                        "Publish attempt %d for %s failed: %r", attempt + 1, message.order_id, e
                    )
                    self._reset()
        logger.error("Could not queue %s for verification", message.order_id)
        return False

    def close(self):
        with self._lock:
            self._reset()


class KafkaPublisher:
    def __init__(self, bootstrap_servers: str | None = None, topic: str | None = None):
        self.topic = topic or config.VERIFY_TOPIC
        self.producer = Producer({
            "bootstrap.servers": bootstrap_servers or config.KAFKA_BOOTSTRAP,
            "acks": "all",  # All replicas must acknowledge
            "enable.idempotence": True,
        })

    def publish(self, message: VerifyOrderMessage) -> bool:
        errors = []

        def delivery_report(err, msg):
            if err is not None:
                errors.append(err)

        try:
            self.producer.produce(
                topic=self.topic,
                key=message.order_id.encode("utf-8"),
                value=message.to_json().encode("utf-8"),
                callback=delivery_report,
            )
            remaining = self.producer.flush(timeout=5)
        except (KafkaException, BufferError) as e:
            logger.error("Kafka error queueing %s: %s", message.order_id, e)
            return False

        if remaining or errors:
            logger.error("Delivery of %s failed: %s", message.order_id, errors or "flush timed out")
            return False
        logger.info("ENQUEUED %s for verification on '%s'", message.order_id, self.topic)
        return True

    def close(self):
        self.producer.flush()


def create_publisher(backend: str | None = None):
    backend = backend or config.QUEUE_BACKEND
    if backend == "rabbitmq":
        return RabbitPublisher()
    if backend == "kafka":
        return KafkaPublisher()
    raise ValueError(f"unknown queue backend: {backend}")
