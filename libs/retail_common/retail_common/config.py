"""Environment configuration shared by the pipeline services."""

import os

KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092")
KAFKA_CONSUMER_GROUP = os.getenv("KAFKA_CONSUMER_GROUP", "order-processor")

QUEUE_BACKEND = os.getenv("QUEUE_BACKEND", "kafka").lower()
STORE_BACKEND = os.getenv("STORE_BACKEND", "sqlite").lower()
STORE_PATH = os.getenv("STORE_PATH", "data/retail.db")

MAX_DELIVERY_ATTEMPTS = int(os.getenv("MAX_DELIVERY_ATTEMPTS", "5"))
REDELIVERY_DELAY_SECONDS = float(os.getenv("REDELIVERY_DELAY_SECONDS", "1.0"))

INVENTORY_CONCURRENCY = os.getenv("INVENTORY_CONCURRENCY", "conditional").lower()
INVENTORY_MAX_RETRIES = int(os.getenv("INVENTORY_MAX_RETRIES", "3"))

ORDER_GATEWAY_URL = os.getenv("ORDER_GATEWAY_URL", "http://order-gateway:8000")
GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE") or None

# Topics
TOPIC_ORDER_PROCESSING = "order-processing"
TOPIC_ORDER_NOTIFICATIONS = "order-notifications"
TOPIC_STOCK_UPDATES = "stock-updates"
POISON_SUFFIX = "-poison"

# Entity store collections
COLLECTION_ORDERS = "orders"
COLLECTION_PRODUCTS = "products"
COLLECTION_IDEMPOTENCY = "order-idempotency"
