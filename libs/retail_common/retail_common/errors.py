"""Exception hierarchy shared by the store, transport and services."""


class RetailError(Exception):
    """Base class for pipeline errors."""


class StoreError(RetailError):
    """The entity store rejected or failed an operation."""


class EntityNotFoundError(StoreError):
    def __init__(self, collection: str, key: str):
        super().__init__(f"{collection}/{key} not found")
        self.collection = collection
        self.key = key


class EntityExistsError(StoreError):
    def __init__(self, collection: str, key: str):
        super().__init__(f"{collection}/{key} already exists")
        self.collection = collection
        self.key = key


class ConcurrencyConflictError(StoreError):
    """The stored record changed since it was read (etag mismatch)."""

    def __init__(self, collection: str, key: str, expected_etag: str | None = None):
        super().__init__(f"{collection}/{key} was modified concurrently (expected etag {expected_etag})")
        self.collection = collection
        self.key = key
        self.expected_etag = expected_etag


class EnqueueError(RetailError):
    """A message could not be handed to the queue transport."""

    def __init__(self, topic: str, reason: str):
        super().__init__(f"Failed to enqueue to {topic}: {reason}")
        self.topic = topic
        self.reason = reason


class InventoryError(RetailError):
    """Base class for stock reservation failures."""


class ProductNotFoundError(InventoryError):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class InsufficientStockError(InventoryError):
    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(f"Insufficient stock for {product_id}. Available: {available}, requested: {requested}")
        self.product_id = product_id
        self.requested = requested
        self.available = available
