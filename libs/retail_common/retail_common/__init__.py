"""Shared building blocks for the retail order pipeline.

Identity generation, wire schemas, the entity store and the queue transport.
"""

from .errors import (
    ConcurrencyConflictError,
    EnqueueError,
    EntityExistsError,
    EntityNotFoundError,
    InsufficientStockError,
    InventoryError,
    ProductNotFoundError,
    RetailError,
    StoreError,
)
from .ids import new_id, now_iso, utc_now
from .schemas import (
    ORDER_STATUS_SUBMITTED,
    NotificationEvent,
    Order,
    OrderRequest,
    OrderStatusChangedEvent,
    OrderUpdate,
    Product,
    StatusChangeRequest,
    StockUpdateEvent,
    SubmissionAck,
)
from .store import EntityStore, InMemoryEntityStore, SqliteEntityStore, StoredEntity, build_store
from .transport import (
    InMemoryQueue,
    InMemoryQueueConsumer,
    KafkaQueue,
    KafkaQueueConsumer,
    QueueConsumer,
    QueueTransport,
    build_consumer,
    build_queue,
    check_queue_connection,
)

__version__ = "0.1.0"

__all__ = [
    "new_id",
    "now_iso",
    "utc_now",
    "ORDER_STATUS_SUBMITTED",
    "OrderRequest",
    "Order",
    "OrderUpdate",
    "StatusChangeRequest",
    "Product",
    "NotificationEvent",
    "OrderStatusChangedEvent",
    "StockUpdateEvent",
    "SubmissionAck",
    "EntityStore",
    "StoredEntity",
    "InMemoryEntityStore",
    "SqliteEntityStore",
    "build_store",
    "QueueTransport",
    "QueueConsumer",
    "KafkaQueue",
    "KafkaQueueConsumer",
    "InMemoryQueue",
    "InMemoryQueueConsumer",
    "build_queue",
    "build_consumer",
    "check_queue_connection",
    "RetailError",
    "StoreError",
    "EntityNotFoundError",
    "EntityExistsError",
    "ConcurrencyConflictError",
    "EnqueueError",
    "InventoryError",
    "ProductNotFoundError",
    "InsufficientStockError",
]
