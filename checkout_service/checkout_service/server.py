"""Checkout Service.

POST /checkout runs the synchronous stock reservation and then submits the
order to the gateway. Order persistence still happens asynchronously in the
order processor.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from retail_common import config
from retail_common.errors import (
    ConcurrencyConflictError,
    EnqueueError,
    InsufficientStockError,
    ProductNotFoundError,
)
from retail_common.schemas import Product
from retail_common.store import build_store
from retail_common.transport import build_queue, check_queue_connection

from .checkout import CheckoutFlow
from .client import GatewayClient
from .inventory import InventoryCoordinator
from .logger import logger
from .schemas import CheckoutRequest, CheckoutResult


class CheckoutState:
    """Holds the checkout flow used by the request handlers."""

    def __init__(self):
        self.flow: CheckoutFlow | None = None


state = CheckoutState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if state.flow is None:
        inventory = InventoryCoordinator(build_store(), mode=config.INVENTORY_CONCURRENCY)
        state.flow = CheckoutFlow(inventory, GatewayClient(), build_queue(client_id="checkout-service"))
        logger.info(f"Checkout configured | inventory_mode={inventory.mode.value} | gateway={config.ORDER_GATEWAY_URL}")
    yield
    logger.info("Shutdown complete")


app = FastAPI(title="Checkout Service", lifespan=lifespan)


def _flow() -> CheckoutFlow:
    if state.flow is None:
        raise HTTPException(status_code=503, detail="Service unavailable")
    return state.flow


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/ready")
def readiness_check():
    """Readiness check: flow configured and queue reachable."""
    ready = state.flow is not None and check_queue_connection()
    return {"status": "ready" if ready else "not ready", "queue": ready}


@app.get("/products/{product_id}", response_model=Product)
def get_product(product_id: str):
    """Get a catalog product with its current stock."""
    try:
        return _flow().inventory.get_product(product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.post("/checkout", status_code=202, response_model=CheckoutResult)
def checkout(request: CheckoutRequest):
    """Reserve stock and queue the order.

    Raises:
        HTTPException: 404 for an unknown product, 409 for insufficient stock
            or a conflict that outlived the retries, 502 if the gateway did
            not accept the order.
    """
    flow = _flow()
    logger.info(f"Checkout requested | customer_id={request.customer_id} | product_id={request.product_id}")
    try:
        return flow.checkout(request)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (InsufficientStockError, ConcurrencyConflictError) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except EnqueueError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
