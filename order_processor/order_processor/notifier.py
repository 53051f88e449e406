"""Notification fan-out for persisted orders."""

from retail_common import config
from retail_common.schemas import NotificationEvent, Order
from retail_common.transport import QueueTransport

from .logger import logger


class OrderNotifier:
    """Publishes a NotificationEvent to order-notifications for each new order.

    Delivery is best-effort. ``notify`` raises whatever the transport raises;
    the caller decides whether that matters.
    """

    def __init__(self, queue: QueueTransport, topic: str = config.TOPIC_ORDER_NOTIFICATIONS):
        self._queue = queue
        self.topic = topic

    def notify(self, order: Order) -> NotificationEvent:
        """Publish the notification for a persisted order.

        Args:
            order: The order as it was stored.

        Returns:
            NotificationEvent: The published event, stamped with processedAt.

        Raises:
            EnqueueError: If the queue did not accept the event.
        """
        event = NotificationEvent.from_order(order)
        self._queue.enqueue(self.topic, event.to_json(), key=order.order_id)
        logger.info(f"Notification sent for order {order.order_id} | topic={self.topic}")
        return event
