"""Queue producer for submitting order requests."""

from retail_common import config
from retail_common.schemas import OrderRequest, SubmissionAck
from retail_common.transport import QueueTransport

from .logger import logger


class OrderProducer:
    """Hands order requests to the order-processing queue.

    Submission returns as soon as the queue has accepted the message. It does
    not wait for the order to be persisted, so the caller never learns the
    order's identity.

    Attributes:
        topic: Queue topic the requests are published to.
    """

    def __init__(self, queue: QueueTransport, topic: str = config.TOPIC_ORDER_PROCESSING):
        """Initialize the producer over a queue transport.

        Args:
            queue: Transport used to enqueue the serialized request.
            topic: Destination topic.
        """
        self._queue = queue
        self.topic = topic

    @property
    def queue(self) -> QueueTransport:
        """Get the underlying queue transport.

        Returns:
            QueueTransport: The transport instance.
        """
        return self._queue

    def submit(self, request: OrderRequest) -> SubmissionAck:
        """Serialize and enqueue an order request.

        Args:
            request (OrderRequest): The order to submit. Field values are not
                range-checked here.

        Returns:
            SubmissionAck: The "queued" acknowledgement.

        Raises:
            EnqueueError: If the queue did not accept the message.
        """
        self._queue.enqueue(self.topic, request.to_message(), key=request.customer_id)
        logger.info(
            f"Order request queued | customer_id={request.customer_id} | product_id={request.product_id} | "
            f"quantity={request.quantity} | topic={self.topic}"
        )
        return SubmissionAck()
