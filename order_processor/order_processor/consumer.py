"""Queue consumer wiring for the order-processing topic."""

from retail_common import config
from retail_common.transport import QueueConsumer, build_consumer

from .logger import logger
from .processor import OrderProcessor


def create_consumer() -> QueueConsumer:
    """Create the consumer for the configured queue backend."""
    return build_consumer(group_id=config.KAFKA_CONSUMER_GROUP)


def consume_orders(processor: OrderProcessor, consumer: QueueConsumer | None = None) -> None:
    """Deliver order-processing messages to the processor until the consumer stops."""
    consumer = consumer or create_consumer()
    consumer.subscribe([config.TOPIC_ORDER_PROCESSING])
    logger.info(f"Consuming {config.TOPIC_ORDER_PROCESSING}")
    consumer.process_messages(processor.handle)
