"""Order Gateway Server.

POST /orders is the asynchronous intake: the request is queued and the
caller gets 202 without an order id. The remaining /orders routes are direct
entity store access for reading and mutating persisted orders.
"""

from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Header, HTTPException, Request, Response
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from retail_common import config
from retail_common.errors import ConcurrencyConflictError, EnqueueError, EntityNotFoundError
from retail_common.schemas import (
    Order,
    OrderRequest,
    OrderStatusChangedEvent,
    OrderUpdate,
    StatusChangeRequest,
    SubmissionAck,
)
from retail_common.store import EntityStore, StoredEntity, build_store
from retail_common.transport import QueueTransport, build_queue, check_queue_connection

from .logger import logger
from .producer import OrderProducer


class GatewayState:
    """Collaborators used by the request handlers."""

    def __init__(self):
        self.store: EntityStore | None = None
        self.queue: QueueTransport | None = None
        self.producer: OrderProducer | None = None

    def configure(self, store: EntityStore, queue: QueueTransport) -> None:
        self.store = store
        self.queue = queue
        self.producer = OrderProducer(queue)

    def reset(self) -> None:
        self.store = None
        self.queue = None
        self.producer = None


state = GatewayState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the store and queue from configuration unless already set."""
    if state.producer is None:
        state.configure(build_store(), build_queue(client_id="order-gateway"))
        logger.info(f"Gateway configured | store={config.STORE_BACKEND} | queue={config.QUEUE_BACKEND}")
    yield
    close = getattr(state.queue, "close", None)
    if close:
        close()
    logger.info("Shutdown complete")


app = FastAPI(title="Order Gateway", lifespan=lifespan)
router = APIRouter()


@app.exception_handler(RequestValidationError)
async def invalid_body_handler(request: Request, exc: RequestValidationError):
    """Intake rejects malformed orders with 400; other routes keep FastAPI's 422."""
    logger.warning(f"Rejected request body | path={request.url.path} | errors={len(exc.errors())}")
    if request.method == "POST" and request.url.path == "/orders":
        return JSONResponse(status_code=400, content={"error": "Invalid order data"})
    return await request_validation_exception_handler(request, exc)


def _store() -> EntityStore:
    if state.store is None:
        raise HTTPException(status_code=503, detail="Service unavailable")
    return state.store


def _load_order(order_id: str) -> StoredEntity:
    entity = _store().get(config.COLLECTION_ORDERS, order_id)
    if entity is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return entity


@router.get("/health")
def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/health/ready")
def readiness_check():
    """Check if the service is ready to accept traffic.

    Returns:
        dict: Service readiness status and queue connection status.
    """
    queue_ok = state.producer is not None and check_queue_connection()
    return {"status": "ready" if queue_ok else "not_ready", "queue": queue_ok}


@router.post("/orders", status_code=202, response_model=SubmissionAck)
def create_order(order: OrderRequest):
    """Queue a new order for asynchronous processing.

    Args:
        order (OrderRequest): The order data to be queued.

    Returns:
        SubmissionAck: "Order submitted for processing" / "queued".

    Raises:
        HTTPException: 500 if the queue did not accept the message.
    """
    if state.producer is None:
        raise HTTPException(status_code=503, detail="Service unavailable")
    logger.info(f"Received new order | customer_id={order.customer_id} | product_id={order.product_id}")
    try:
        return state.producer.submit(order)
    except EnqueueError as e:
        logger.error(f"Failed to queue order for customer {order.customer_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.get("/orders", response_model=list[Order])
def list_orders():
    """List all persisted orders."""
    return [Order.model_validate(entity.data) for entity in _store().scan(config.COLLECTION_ORDERS)]


@router.get("/orders/{order_id}", response_model=Order)
def get_order(order_id: str, response: Response):
    """Get a persisted order; its concurrency token is returned in the ETag header."""
    entity = _load_order(order_id)
    response.headers["ETag"] = entity.etag
    return Order.model_validate(entity.data)


@router.put("/orders/{order_id}", response_model=Order)
def update_order(order_id: str, update: OrderUpdate, response: Response, if_match: str | None = Header(default=None)):
    """Apply a partial update to a persisted order.

    The write is conditional on the etag read here, or on the If-Match header
    when the client supplies one. totalPrice is always recomputed from the
    merged quantity and unitPrice.

    Raises:
        HTTPException: 404 if the order does not exist, 409 if it changed
            since it was read.
    """
    entity = _load_order(order_id)
    if if_match is not None and if_match != entity.etag:
        raise HTTPException(status_code=409, detail="Order was modified by another request")

    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    order = Order.model_validate(entity.data).model_copy(update=changes)
    order = order.model_copy(update={"total_price": order.quantity * order.unit_price})
    try:
        stored = _store().update(config.COLLECTION_ORDERS, order_id, order.to_record(), etag=entity.etag)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConcurrencyConflictError as e:
        raise HTTPException(status_code=409, detail="Order was modified by another request") from e

    logger.info(f"Order updated | order_id={order_id} | fields={sorted(changes)}")
    response.headers["ETag"] = stored.etag
    return order


@router.delete("/orders/{order_id}", status_code=204)
def delete_order(order_id: str, if_match: str | None = Header(default=None)):
    """Delete a persisted order."""
    try:
        _store().delete(config.COLLECTION_ORDERS, order_id, etag=if_match)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConcurrencyConflictError as e:
        raise HTTPException(status_code=409, detail="Order was modified by another request") from e
    logger.info(f"Order deleted | order_id={order_id}")
    return Response(status_code=204)


@router.post("/orders/{order_id}/status", response_model=Order)
def change_order_status(order_id: str, change: StatusChangeRequest, response: Response):
    """Move an order to a new status and notify downstream listeners.

    The status write is guarded by the order's etag. The notification is
    best-effort and never fails the request.
    """
    entity = _load_order(order_id)
    order = Order.model_validate(entity.data)
    previous_status = order.status
    updated = order.model_copy(update={"status": change.status})
    try:
        stored = _store().update(config.COLLECTION_ORDERS, order_id, updated.to_record(), etag=entity.etag)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConcurrencyConflictError as e:
        raise HTTPException(status_code=409, detail="Order was modified by another request") from e

    logger.info(f"Order status changed | order_id={order_id} | from={previous_status} | to={change.status}")
    _publish_status_change(updated, previous_status, change.updated_by)
    response.headers["ETag"] = stored.etag
    return updated


def _publish_status_change(order: Order, previous_status: str, updated_by: str) -> None:
    event = OrderStatusChangedEvent(
        order_id=order.order_id,
        customer_id=order.customer_id,
        customer_name=order.username,
        product_name=order.product_name,
        previous_status=previous_status,
        new_status=order.status,
        updated_by=updated_by,
    )
    try:
        state.queue.enqueue(config.TOPIC_ORDER_NOTIFICATIONS, event.to_json(), key=order.order_id)
    except EnqueueError as e:
        logger.error(f"Status change notification failed for order {order.order_id}: {e}")


app.include_router(router)
logger.info("API router mounted.")
