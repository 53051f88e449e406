"""Turns order-processing messages into persisted orders."""

from collections.abc import Callable

from pydantic import ValidationError
from retail_common import config
from retail_common.errors import EntityExistsError, StoreError
from retail_common.ids import new_id, now_iso
from retail_common.schemas import Order, OrderRequest
from retail_common.store import EntityStore

from .logger import logger
from .notifier import OrderNotifier


class OrderProcessor:
    """Queue handler for the order-processing topic.

    For each delivered payload:

    1. parse it as an OrderRequest; unparseable payloads are logged and
       dropped without raising, so they are never redelivered;
    2. generate a fresh order id (ids inside the request are ignored);
    3. insert the order with status "Submitted" and a recomputed total;
    4. publish the notification, logging and swallowing any failure;
    5. let store errors propagate so the transport redelivers the message.

    Without an idempotency key a redelivered message creates another order.
    With one, the key is claimed in the order-idempotency collection before
    the insert and later deliveries resolve to the first order.
    """

    def __init__(
        self,
        store: EntityStore,
        notifier: OrderNotifier,
        id_factory: Callable[[], str] = new_id,
    ):
        self._store = store
        self._notifier = notifier
        self._new_id = id_factory
        self.stats = {"created": 0, "duplicates": 0, "dropped": 0, "notification_failures": 0}

    def handle(self, payload: bytes) -> Order | None:
        """Process one message. Returns the order, or None if the payload was dropped."""
        request = self._parse(payload)
        if request is None:
            return None

        existing = None
        if request.idempotency_key:
            order_id, existing = self._claim(request.idempotency_key)
        else:
            order_id = self._new_id()
        if existing is not None:
            return self._duplicate(existing, request.idempotency_key)

        order = Order.from_request(order_id, request)
        try:
            self._store.insert(config.COLLECTION_ORDERS, order_id, order.to_record())
        except EntityExistsError:
            if not request.idempotency_key:
                raise
            # A concurrent delivery of the same keyed message won the insert.
            stored = self._store.get(config.COLLECTION_ORDERS, order_id)
            return self._duplicate(Order.model_validate(stored.data), request.idempotency_key)

        self.stats["created"] += 1
        logger.info(
            f"Order {order_id} successfully processed and stored | customer_id={order.customer_id} | "
            f"product_id={order.product_id} | quantity={order.quantity} | total_price={order.total_price}"
        )
        self._notify(order)
        return order

    def _parse(self, payload: bytes) -> OrderRequest | None:
        try:
            return OrderRequest.model_validate_json(payload)
        except ValidationError as e:
            self.stats["dropped"] += 1
            logger.error(f"Failed to deserialize order message, dropping it | errors={e.error_count()} | payload={payload[:200]!r}")
            return None

    def _claim(self, idempotency_key: str) -> tuple[str, Order | None]:
        """Claim an order id for the key, or find the one claimed earlier.

        Returns the order id to use and the already-stored order, if any.
        """
        candidate = self._new_id()
        try:
            self._store.insert(
                config.COLLECTION_IDEMPOTENCY, idempotency_key, {"orderId": candidate, "claimedAt": now_iso()}
            )
            return candidate, None
        except EntityExistsError:
            pass

        claim = self._store.get(config.COLLECTION_IDEMPOTENCY, idempotency_key)
        if claim is None:
            raise StoreError(f"Idempotency claim {idempotency_key} disappeared")
        order_id = claim.data["orderId"]
        stored = self._store.get(config.COLLECTION_ORDERS, order_id)
        if stored is None:
            logger.warning(f"Resuming claimed order {order_id} | idempotency_key={idempotency_key}")
            return order_id, None
        return order_id, Order.model_validate(stored.data)

    def _duplicate(self, order: Order, idempotency_key: str) -> Order:
        self.stats["duplicates"] += 1
        logger.info(f"Duplicate delivery for order {order.order_id}, skipping | idempotency_key={idempotency_key}")
        return order

    def _notify(self, order: Order) -> None:
        try:
            self._notifier.notify(order)
        except Exception as e:
            self.stats["notification_failures"] += 1
            logger.error(f"Error sending order notification for {order.order_id}: {e}")
