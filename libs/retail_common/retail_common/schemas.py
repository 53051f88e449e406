"""Pydantic models for orders, products and the events exchanged over the queue.

All models serialize with camelCase keys (the wire and storage format) and
accept either camelCase or snake_case on input.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .ids import utc_now

ORDER_STATUS_SUBMITTED = "Submitted"


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self, **kwargs: Any) -> bytes:
        """Serialize to the UTF-8 JSON payload used on the queue."""
        return self.model_dump_json(by_alias=True, **kwargs).encode("utf-8")

    def to_record(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible dict stored in the entity store."""
        return self.model_dump(mode="json", by_alias=True)


class OrderRequest(CamelModel):
    """Client-supplied order, not yet identified.

    Attributes:
        customer_id: Customer placing the order.
        username: Customer's username, copied onto the order.
        product_id: Catalog product key.
        product_name: Product display name at the time of ordering.
        order_date: When the customer placed the order.
        quantity: Units ordered. Not range-checked at intake.
        unit_price: Price per unit.
        total_price: Client-computed total; the processor recomputes it.
        status: Ignored at creation and accepted in any JSON form; orders
            always start as "Submitted".
        idempotency_key: Optional client token used to deduplicate redeliveries.
    """

    customer_id: str
    username: str
    product_id: str
    product_name: str
    order_date: datetime
    quantity: int
    unit_price: float
    total_price: float
    status: Any = ORDER_STATUS_SUBMITTED
    idempotency_key: str | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "customerId": "cust-12345",
                "username": "jdoe",
                "productId": "prod-001",
                "productName": "Espresso Machine",
                "orderDate": "2025-04-24T10:00:00Z",
                "quantity": 2,
                "unitPrice": 149.99,
                "totalPrice": 299.98,
                "status": "Submitted",
            }
        }
    )

    def to_message(self) -> bytes:
        """Serialize for the order-processing topic, omitting an absent idempotency key."""
        return self.to_json(exclude_none=True)


class Order(CamelModel):
    """Durable order record stored in the "orders" collection."""

    order_id: str
    customer_id: str
    username: str
    product_id: str
    product_name: str
    order_date: datetime
    quantity: int
    unit_price: float
    total_price: float
    status: str = ORDER_STATUS_SUBMITTED

    @classmethod
    def from_request(cls, order_id: str, request: OrderRequest) -> "Order":
        """Build a new order; status and total are set server-side."""
        return cls(
            order_id=order_id,
            customer_id=request.customer_id,
            username=request.username,
            product_id=request.product_id,
            product_name=request.product_name,
            order_date=request.order_date,
            quantity=request.quantity,
            unit_price=request.unit_price,
            total_price=request.quantity * request.unit_price,
            status=ORDER_STATUS_SUBMITTED,
        )


class OrderUpdate(CamelModel):
    """Partial update applied by PUT /orders/{id}."""

    customer_id: str | None = None
    username: str | None = None
    product_id: str | None = None
    product_name: str | None = None
    order_date: datetime | None = None
    quantity: int | None = None
    unit_price: float | None = None
    total_price: float | None = None
    status: str | None = None


class StatusChangeRequest(CamelModel):
    status: str = Field(..., min_length=1)
    updated_by: str = "System"


class Product(CamelModel):
    """Catalog product as stored in the "products" collection."""

    product_id: str
    product_name: str
    description: str = ""
    price: float
    stock_available: int
    image_url: str = ""


class NotificationEvent(CamelModel):
    """Published to order-notifications after an order is persisted."""

    order_id: str
    customer_id: str
    customer_name: str
    product_name: str
    quantity: int
    total_price: float
    order_date: datetime
    status: str
    processed_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_order(cls, order: Order, processed_at: datetime | None = None) -> "NotificationEvent":
        return cls(
            order_id=order.order_id,
            customer_id=order.customer_id,
            customer_name=order.username,
            product_name=order.product_name,
            quantity=order.quantity,
            total_price=order.total_price,
            order_date=order.order_date,
            status=order.status,
            processed_at=processed_at or utc_now(),
        )


class OrderStatusChangedEvent(CamelModel):
    """Published to order-notifications when an order's status changes."""

    order_id: str
    customer_id: str
    customer_name: str
    product_name: str
    previous_status: str
    new_status: str
    updated_date: datetime = Field(default_factory=utc_now)
    updated_by: str = "System"


class StockUpdateEvent(CamelModel):
    """Published to stock-updates after a checkout decrements stock."""

    product_id: str
    product_name: str
    previous_stock: int
    new_stock: int
    updated_by: str = "Order System"
    update_date: datetime = Field(default_factory=utc_now)


class SubmissionAck(BaseModel):
    """Response body for an accepted order submission."""

    message: str = "Order submitted for processing"
    status: str = "queued"
