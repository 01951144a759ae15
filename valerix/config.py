import os

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Broker selection: "rabbitmq" or "kafka"
QUEUE_BACKEND = os.environ.get("QUEUE_BACKEND", "rabbitmq")

RABBITMQ_HOST = os.environ.get("RABBITMQ_HOST", "localhost")
RABBITMQ_PORT = int(os.environ.get("RABBITMQ_PORT", "5672"))
RABBITMQ_USER = os.environ.get("RABBITMQ_USER", "guest")
RABBITMQ_PASSWORD = os.environ.get("RABBITMQ_PASSWORD", "guest")
RABBITMQ_VHOST = os.environ.get("RABBITMQ_VHOST", "/")

# Exchange
VERIFY_EXCHANGE = "order_verification"
VERIFY_EXCHANGE_TYPE = "direct"

# Queue & routing key
VERIFY_QUEUE = os.environ.get("VERIFY_QUEUE", "verify-order-queue")
VERIFY_ROUTING_KEY = "order.verify"
VERIFY_DELIVERY_LIMIT = int(os.environ.get("VERIFY_DELIVERY_LIMIT", "10"))

# Dead-letter
DLX_EXCHANGE = "order_verification_dlx"
DLQ_QUEUE = "verify-order-dlq"

# Kafka
KAFKA_BOOTSTRAP = os.environ.get("KAFKA_BOOTSTRAP", "localhost:9092")
VERIFY_TOPIC = os.environ.get("VERIFY_TOPIC", "verify-orders")
VERIFY_DLQ_TOPIC = os.environ.get("VERIFY_DLQ_TOPIC", "verify-orders-dlq")
KAFKA_GROUP_ID = os.environ.get("GROUP_ID", "inventory-verification")

# Order service
INVENTORY_URL = os.environ.get("INVENTORY_URL", "http://localhost:8001")
ORDER_DEADLINE_MS = int(os.environ.get("ORDER_DEADLINE_MS", "2000"))

# Inventory service
VERIFY_CONSUMER_ENABLED = os.environ.get("VERIFY_CONSUMER_ENABLED", "1") == "1"

# Initial chaos settings; changed at runtime through /chaos
GREMLIN_MODE = os.environ.get("GREMLIN_MODE", "false") == "true"
GREMLIN_MIN_LATENCY_MS = int(os.environ.get("GREMLIN_MIN_LATENCY_MS", "2000"))
GREMLIN_MAX_LATENCY_MS = int(os.environ.get("GREMLIN_MAX_LATENCY_MS", "5000"))
SCHRODINGER_MODE = os.environ.get("SCHRODINGER_MODE", "false") == "true"
SCHRODINGER_PROBABILITY = float(os.environ.get("SCHRODINGER_PROBABILITY", "0.5"))
