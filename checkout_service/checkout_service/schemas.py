"""Request and response models for the checkout API."""

from datetime import datetime

from pydantic import Field
from retail_common.schemas import CamelModel


class CheckoutRequest(CamelModel):
    """A customer buying one product.

    Price and product name come from the catalog, not from the caller.
    """

    customer_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    order_date: datetime | None = None
    idempotency_key: str | None = None


class CheckoutResult(CamelModel):
    message: str = "Order submitted for processing"
    status: str = "queued"
    product_id: str
    remaining_stock: int
