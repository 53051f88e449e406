"""Synchronous checkout: reserve stock, then hand the order to the pipeline."""

from typing import Protocol

from retail_common import config
from retail_common.errors import EnqueueError, RetailError
from retail_common.ids import utc_now
from retail_common.schemas import ORDER_STATUS_SUBMITTED, OrderRequest, StockUpdateEvent
from retail_common.transport import QueueTransport

from .inventory import InventoryCoordinator, StockReservation
from .logger import logger
from .schemas import CheckoutRequest, CheckoutResult


class OrderSubmitter(Protocol):
    def submit(self, request: OrderRequest): ...


class CheckoutFlow:
    """Runs one checkout.

    The stock decrement and the order submission are separate writes. If the
    submission fails the reserved stock is released again; if the process
    dies in between, stock stays decremented without an order.
    """

    def __init__(self, inventory: InventoryCoordinator, submitter: OrderSubmitter, queue: QueueTransport):
        self.inventory = inventory
        self._submitter = submitter
        self._queue = queue

    def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        """Reserve stock and submit the order.

        Raises:
            ProductNotFoundError: Unknown product.
            InsufficientStockError: Not enough stock.
            ConcurrencyConflictError: Stock kept changing under us.
            EnqueueError: The order could not be submitted; stock was released.
        """
        reservation = self.inventory.reserve_stock(request.product_id, request.quantity)
        order = OrderRequest(
            customer_id=request.customer_id,
            username=request.username,
            product_id=reservation.product_id,
            product_name=reservation.product_name,
            order_date=request.order_date or utc_now(),
            quantity=request.quantity,
            unit_price=reservation.unit_price,
            total_price=reservation.unit_price * request.quantity,
            status=ORDER_STATUS_SUBMITTED,
            idempotency_key=request.idempotency_key,
        )

        try:
            self._submitter.submit(order)
        except EnqueueError:
            logger.error(f"Order submission failed, releasing stock | product_id={reservation.product_id}")
            self._release(reservation)
            raise

        logger.info(
            f"Checkout complete | customer_id={request.customer_id} | product_id={reservation.product_id} | "
            f"quantity={request.quantity} | remaining_stock={reservation.new_stock}"
        )
        self._publish_stock_update(reservation)
        return CheckoutResult(product_id=reservation.product_id, remaining_stock=reservation.new_stock)

    def _release(self, reservation: StockReservation) -> None:
        try:
            self.inventory.release_stock(reservation)
        except RetailError as e:
            logger.error(f"Could not release {reservation.quantity} units of {reservation.product_id}: {e}")

    def _publish_stock_update(self, reservation: StockReservation) -> None:
        event = StockUpdateEvent(
            product_id=reservation.product_id,
            product_name=reservation.product_name,
            previous_stock=reservation.previous_stock,
            new_stock=reservation.new_stock,
        )
        try:
            self._queue.enqueue(config.TOPIC_STOCK_UPDATES, event.to_json(), key=reservation.product_id)
        except EnqueueError as e:
            logger.error(f"Stock update message failed for {reservation.product_id}: {e}")
