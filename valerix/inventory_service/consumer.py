import logging
import threading
from enum import Enum

import pika
from confluent_kafka import Consumer, KafkaError, Producer, TopicPartition

from valerix import config
from valerix.broker.models import MalformedMessage, VerifyOrderMessage
from valerix.broker.topology import connection_params, declare_verification_queue
from valerix.inventory_service.chaos import FaultInjector, InjectedCrash
from valerix.inventory_service.ledger import (
    IdempotentLedger,
    InsufficientStockError,
    PersistenceError,
    UnknownItemError,
)

logger = logging.getLogger("inventory.verification")


class Disposition(str, Enum):
    ACK = "ack"
    RETRY = "retry"  # leave un-acknowledged so the broker redelivers
    DEAD_LETTER = "dead_letter"


class AsyncVerificationConsumer:
    """Applies queued reservations exactly once per order id.

    Never raises: every outcome is a Disposition that the transport runner
    turns into ack, redelivery or dead-lettering.
    """

    def __init__(self, ledger: IdempotentLedger, faults: FaultInjector | None = None):
        self.ledger = ledger
        self.faults = faults

    def process_message(self, body) -> Disposition:
        try:
            message = VerifyOrderMessage.from_json(body)
        except (MalformedMessage, UnicodeDecodeError) as e:
            logger.error("MALFORMED message -> DLQ | error: %s", e)
            return Disposition.DEAD_LETTER

        try:
            result = self.ledger.apply(message.to_order())
        except (UnknownItemError, InsufficientStockError) as e:
            logger.error("REJECTED %s -> DLQ | %s", message.order_id, e)
            return Disposition.DEAD_LETTER
        except PersistenceError as e:
            logger.warning("Ledger failure for %s, leaving for redelivery | %s", message.order_id, e)
            return Disposition.RETRY

        if not result.applied:
            logger.info(
                "DUPLICATE %s -> ACK (no-op, tx=%s)", message.order_id, result.entry.transaction_id
            )
            return Disposition.ACK

        if self.faults is not None:
            try:
                self.faults.crash_after_commit(message.order_id)
            except InjectedCrash:
                # Committed but not acknowledged: the redelivery finds the entry.
                return Disposition.RETRY

        logger.info("VERIFIED %s | tx=%s", message.order_id, result.entry.transaction_id)
        return Disposition.ACK


class RabbitVerificationRunner:
    """Consumes the verification queue until stop(), reconnecting on broker loss."""

    def __init__(self, consumer: AsyncVerificationConsumer,
                 params: pika.ConnectionParameters | None = None, reconnect_delay: float = 5):
        self.consumer = consumer
        self._params = params
        self.reconnect_delay = reconnect_delay
        self.connection = None
        self.channel = None
        self._stopped = threading.Event()

    def _connect(self, retries=15, delay=2):
        params = self._params or connection_params()
        for attempt in range(1, retries + 1):
            try:
                self.connection = pika.BlockingConnection(params)
                self.channel = self.connection.channel()
                declare_verification_queue(self.channel)
                self.channel.basic_qos(prefetch_count=1)
                return
            except pika.exceptions.AMQPConnectionError:
                logger.warning("RabbitMQ not ready, retry %d/%d", attempt, retries)
                if self._stopped.wait(delay):
                    break
        raise pika.exceptions.AMQPConnectionError("Cannot connect to RabbitMQ")

    def on_message(self, ch, method, properties, body):
        disposition = self.consumer.process_message(body)
        if disposition is Disposition.ACK:
            ch.basic_ack(delivery_tag=method.delivery_tag)
        elif disposition is Disposition.RETRY:
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=True)
        else:
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

    def _consume(self):
        self._connect()
        self.channel.basic_consume(
            queue=config.VERIFY_QUEUE,
            on_message_callback=self.on_message,
            auto_ack=False,
        )
        logger.info("Listening on '%s'", config.VERIFY_QUEUE)
        try:
            self.channel.start_consuming()
        finally:
            if self.connection.is_open:
                self.connection.close()

    def run(self):
        while not self._stopped.is_set():
            try:
                self._consume()
            except KeyboardInterrupt:
                break
            except pika.exceptions.AMQPError as e:
                # Unacked deliveries go back to the queue when the connection drops.
                logger.warning("Lost RabbitMQ connection (%s), reconnecting in %ss",
                               e, self.reconnect_delay)
                self._stopped.wait(self.reconnect_delay)
        logger.info("Stopped.")

    def stop(self):
        self._stopped.set()
        if self.connection and self.connection.is_open:
            self.connection.add_callback_threadsafe(self.channel.stop_consuming)


class KafkaVerificationRunner:
    def __init__(self, consumer: AsyncVerificationConsumer,
                 bootstrap_servers: str | None = None, group_id: str | None = None,
                 delivery_limit: int | None = None, retry_backoff: float = 0.5):
        self.consumer = consumer
        self.bootstrap_servers = bootstrap_servers or config.KAFKA_BOOTSTRAP
        self.group_id = group_id or config.KAFKA_GROUP_ID
        self.delivery_limit = delivery_limit or config.VERIFY_DELIVERY_LIMIT
        self.retry_backoff = retry_backoff
        self._stopped = threading.Event()
        # (topic, partition, offset) -> deliveries so far
        self._attempts = {}

        # Consumer (manual commit)
        self.kafka = Consumer({
            "bootstrap.servers": self.bootstrap_servers,
            "group.id": self.group_id,
            "auto.offset.reset": "earliest",
            "enable.auto.commit": False,
        })
        # Producer for dead-lettered messages
        self.dlq_producer = Producer({
            "bootstrap.servers": self.bootstrap_servers,
            "acks": "all",
        })

    def _dead_letter(self, msg) -> bool:
        try:
            self.dlq_producer.produce(topic=config.VERIFY_DLQ_TOPIC, key=msg.key(), value=msg.value())
            return self.dlq_producer.flush(timeout=5) == 0
        except Exception as e:
            logger.error("Failed to dead-letter message: %s", e)
            return False

    def handle(self, msg) -> None:
        position = (msg.topic(), msg.partition(), msg.offset())
        disposition = self.consumer.process_message(msg.value())

        if disposition is Disposition.RETRY:
            attempts = self._attempts.get(position, 0) + 1
            if attempts >= self.delivery_limit:
                logger.error("Offset %s failed %d deliveries -> DLQ", position, attempts)
                disposition = Disposition.DEAD_LETTER
            else:
                self._attempts[position] = attempts

        if disposition is Disposition.DEAD_LETTER and not self._dead_letter(msg):
            disposition = Disposition.RETRY

        if disposition is Disposition.RETRY:
            self._stopped.wait(self.retry_backoff)
            # Rewind so the next poll redelivers this offset.
            self.kafka.seek(TopicPartition(*position))
            return
        # commit offset only after the ledger transaction (or DLQ publish)
        self.kafka.commit(message=msg, asynchronous=False)
        self._attempts.pop(position, None)

    def run(self):
        self.kafka.subscribe([config.VERIFY_TOPIC])
        logger.info("Subscribed to '%s' as %s", config.VERIFY_TOPIC, self.group_id)
        try:
            while not self._stopped.is_set():
                msg = self.kafka.poll(timeout=1.0)
                if msg is None:
                    continue
                if msg.error():
                    if msg.error().code() == KafkaError._PARTITION_EOF:
                        continue
                    logger.error("Consumer error: %s", msg.error())
                    continue
                self.handle(msg)
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            try:
                self.kafka.close()
            finally:
                self.dlq_producer.flush()

    def stop(self):
        self._stopped.set()


def create_runner(consumer: AsyncVerificationConsumer, backend: str | None = None):
    backend = backend or config.QUEUE_BACKEND
    if backend == "rabbitmq":
        return RabbitVerificationRunner(consumer)
    if backend == "kafka":
        return KafkaVerificationRunner(consumer)
    raise ValueError(f"unknown queue backend: {backend}")
