"""Durable at-least-once queue transport.

Producers call ``enqueue(topic, payload)``. Consumers register a handler that
is invoked once per delivered message:

- handler returns: the message is acknowledged (offset committed);
- handler raises: the message is redelivered after a delay;
- after ``max_attempts`` failed deliveries the message is moved to
  ``<topic>-poison`` and acknowledged.

There is no ordering guarantee across messages and no protection against
duplicate delivery.
"""

import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable
from typing import Protocol

from confluent_kafka import Consumer, KafkaError, KafkaException, Producer, TopicPartition
from confluent_kafka.admin import AdminClient
from logging_utils import get_queue_logger
from pydantic import BaseModel, Field

from . import config
from .errors import EnqueueError

logger = get_queue_logger("retail-pipeline")

CONTENT_TYPE = "application/json"

MessageHandler = Callable[[bytes], None]

DEFAULT_CONSUMER_CONFIG = {
    "auto.offset.reset": "earliest",
    "enable.auto.commit": False,
    "session.timeout.ms": 30000,
    "max.poll.interval.ms": 300000,
}


class QueueMessage(BaseModel):
    """A content-typed payload plus its delivery bookkeeping."""

    topic: str
    payload: bytes
    key: str | None = None
    attempt: int = 1
    headers: dict[str, str] = Field(default_factory=lambda: {"content-type": CONTENT_TYPE})


class QueueTransport(Protocol):
    def enqueue(self, topic: str, payload: bytes, key: str | None = None) -> None:
        """Hand a payload to the queue; raises EnqueueError on failure."""
        ...


class QueueConsumer(Protocol):
    def subscribe(self, topics: list[str]) -> None: ...

    def process_messages(self, handler: MessageHandler) -> None: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


def poison_topic(topic: str) -> str:
    return f"{topic}{config.POISON_SUFFIX}"


class KafkaQueue:
    """Kafka-backed producer side of the transport.

    ``enqueue`` flushes and waits for the broker acknowledgement, so a
    returned call means the message is durable and a failure surfaces to the
    caller as EnqueueError.
    """

    def __init__(self, bootstrap_servers: str, client_id: str = "retail-pipeline", delivery_timeout: float = 10.0):
        """Initialize the Kafka producer.

        Args:
            bootstrap_servers: Comma-separated list of Kafka broker addresses.
            client_id: Producer client ID.
            delivery_timeout: Seconds to wait for the broker acknowledgement.
        """
        self.delivery_timeout = delivery_timeout
        self._producer = Producer(
            {
                "bootstrap.servers": bootstrap_servers,
                "client.id": client_id,
                "acks": "all",
                "enable.idempotence": True,
                "message.timeout.ms": 5000,
            }
        )

    @property
    def producer(self):
        """The underlying Kafka producer instance."""
        return self._producer

    def _delivery_callback(self, err, msg) -> None:
        if err:
            logger.error(f"Message failed delivery: {err} | topic={msg.topic()}")
        else:
            logger.debug(f"Message delivered to {msg.topic()} [p:{msg.partition()}] | offset={msg.offset()}")

    def enqueue(self, topic: str, payload: bytes, key: str | None = None) -> None:
        """Publish a payload and block until it is acknowledged.

        Raises:
            EnqueueError: If the producer buffer is full, the broker rejects the
                message, or delivery is not confirmed within the timeout.
        """
        errors = []

        def on_delivery(err, msg):
            self._delivery_callback(err, msg)
            if err:
                errors.append(err)

        try:
            self._producer.produce(
                topic=topic,
                key=key.encode("utf-8") if key else None,
                value=payload,
                headers=[("content-type", CONTENT_TYPE.encode("utf-8"))],
                on_delivery=on_delivery,
            )
        except (BufferError, KafkaException) as e:
            logger.warning(f"Producer rejected message for {topic}: {e}")
            raise EnqueueError(topic, str(e)) from e

        remaining = self._producer.flush(self.delivery_timeout)
        if remaining > 0:
            raise EnqueueError(topic, f"{remaining} messages still pending delivery")
        if errors:
            raise EnqueueError(topic, str(errors[0]))

    def close(self) -> None:
        remaining = self._producer.flush(self.delivery_timeout)
        if remaining > 0:
            logger.warning(f"{remaining} messages still pending delivery")
        logger.info("Producer closed")


class KafkaQueueConsumer:
    """Kafka-backed consumer side of the transport.

    Offsets are committed manually once the handler returns. A failed delivery
    seeks the partition back to the message so it is polled again after
    ``redelivery_delay`` seconds.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        group_id: str,
        poison_queue: QueueTransport | None = None,
        max_attempts: int = config.MAX_DELIVERY_ATTEMPTS,
        redelivery_delay: float = config.REDELIVERY_DELAY_SECONDS,
        auto_offset_reset: str = "earliest",
    ):
        """Initialize the consumer.

        Args:
            bootstrap_servers: Kafka bootstrap servers
            group_id: Consumer group ID
            poison_queue: Where messages go after max_attempts failures
            max_attempts: Deliveries before a message is treated as poison
            redelivery_delay: Seconds to wait before redelivering a failed message
            auto_offset_reset: Where to start consuming if no offset is stored
        """
        logger.info(f"Initializing consumer | bootstrap_servers={bootstrap_servers} | group_id={group_id}")
        consumer_config = DEFAULT_CONSUMER_CONFIG.copy()
        consumer_config.update(
            {
                "bootstrap.servers": bootstrap_servers,
                "group.id": group_id,
                "auto.offset.reset": auto_offset_reset,
            }
        )
        self.consumer = Consumer(consumer_config)
        self.poison_queue = poison_queue
        self.max_attempts = max_attempts
        self.redelivery_delay = redelivery_delay
        self.stats = {"messages_processed": 0, "redeliveries": 0, "poisoned": 0, "errors": 0, "start_time": time.time()}
        self._attempts: dict[tuple[str, int, int], int] = {}
        self._running = False
        self._closed = False

    def subscribe(self, topics: list[str]) -> None:
        logger.info(f"Subscribing to topics: {topics}")
        self.consumer.subscribe(topics)

    def process_messages(self, handler: MessageHandler) -> None:
        """Poll and deliver messages until stop() is called."""
        logger.info("Starting message processing loop")
        self._running = True
        try:
            while self._running:
                msg = self.consumer.poll(timeout=1.0)
                if msg is None:
                    continue
                if msg.error():
                    if msg.error().code() == KafkaError._PARTITION_EOF:
                        logger.debug("Reached end of partition")
                        continue
                    logger.error(f"Kafka error: {msg.error()}")
                    self.stats["errors"] += 1
                    continue
                self._deliver(msg, handler)
        except KeyboardInterrupt:
            logger.info("Shutting down consumer...")
        finally:
            self._log_status()
            self.close()

    def _deliver(self, msg, handler: MessageHandler) -> None:
        position = (msg.topic(), msg.partition(), msg.offset())
        attempt = self._attempts.get(position, 0) + 1
        try:
            handler(msg.value())
        except Exception as e:
            self.stats["errors"] += 1
            if attempt >= self.max_attempts and self._move_to_poison(msg, attempt):
                self._attempts.pop(position, None)
                self._commit(msg)
                return
            self._attempts[position] = attempt
            self.stats["redeliveries"] += 1
            logger.warning(
                f"Handler failed, redelivering | topic={msg.topic()} | partition={msg.partition()} | "
                f"offset={msg.offset()} | attempt={attempt} | error={e}"
            )
            time.sleep(self.redelivery_delay)
            try:
                self.consumer.seek(TopicPartition(msg.topic(), msg.partition(), msg.offset()))
            except KafkaException as seek_error:
                self.stats["errors"] += 1
                logger.error(
                    f"Seek failed, message comes back after the next rebalance | offset={msg.offset()} | error={seek_error}"
                )
            return

        self._attempts.pop(position, None)
        if self._commit(msg):
            self.stats["messages_processed"] += 1

    def _commit(self, msg) -> bool:
        """Commit past ``msg``. A failed commit leaves the message to be redelivered."""
        try:
            self.consumer.commit(message=msg, asynchronous=False)
        except KafkaException as e:
            self.stats["errors"] += 1
            logger.error(f"Commit failed | topic={msg.topic()} | partition={msg.partition()} | offset={msg.offset()} | error={e}")
            return False
        return True

    def _move_to_poison(self, msg, attempt: int) -> bool:
        target = poison_topic(msg.topic())
        if self.poison_queue is None:
            logger.error(f"No poison queue configured, keeping message | topic={msg.topic()} | offset={msg.offset()}")
            return False
        try:
            self.poison_queue.enqueue(target, msg.value())
        except EnqueueError as e:
            logger.error(f"Failed to move message to {target}: {e}")
            return False
        self.stats["poisoned"] += 1
        logger.error(f"Message moved to {target} after {attempt} attempts | offset={msg.offset()}")
        return True

    def _log_status(self) -> None:
        runtime = time.time() - self.stats["start_time"]
        logger.info(
            f"Consumer status | messages_processed={self.stats['messages_processed']} | "
            f"redeliveries={self.stats['redeliveries']} | poisoned={self.stats['poisoned']} | "
            f"errors={self.stats['errors']} | runtime_seconds={runtime:.2f}"
        )

    def stop(self) -> None:
        self._running = False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.consumer.close()
        logger.info("Consumer closed")


class InMemoryQueue:
    """In-process queue with the same delivery semantics as the Kafka transport.

    A failed delivery puts the message back at the tail of its topic with an
    incremented attempt counter.
    """

    def __init__(self, max_attempts: int = config.MAX_DELIVERY_ATTEMPTS):
        self.max_attempts = max_attempts
        self._topics: dict[str, deque[QueueMessage]] = defaultdict(deque)
        self._lock = threading.Lock()

    def enqueue(self, topic: str, payload: bytes, key: str | None = None) -> None:
        with self._lock:
            self._topics[topic].append(QueueMessage(topic=topic, payload=payload, key=key))

    def dequeue(self, topic: str) -> QueueMessage | None:
        with self._lock:
            messages = self._topics.get(topic)
            return messages.popleft() if messages else None

    def messages(self, topic: str) -> list[QueueMessage]:
        """Snapshot of the messages waiting on a topic."""
        with self._lock:
            return list(self._topics.get(topic, ()))

    def pending(self, topic: str) -> int:
        with self._lock:
            return len(self._topics.get(topic, ()))

    def deliver(self, topic: str, handler: MessageHandler) -> bool:
        """Deliver one message to the handler. Returns False if the topic is empty."""
        message = self.dequeue(topic)
        if message is None:
            return False
        try:
            handler(message.payload)
        except Exception as e:
            with self._lock:
                if message.attempt >= self.max_attempts:
                    logger.error(f"Message moved to {poison_topic(topic)} after {message.attempt} attempts")
                    self._topics[poison_topic(topic)].append(
                        message.model_copy(update={"topic": poison_topic(topic)})
                    )
                else:
                    logger.warning(f"Handler failed, redelivering | topic={topic} | attempt={message.attempt} | error={e}")
                    self._topics[topic].append(message.model_copy(update={"attempt": message.attempt + 1}))
        return True

    def drain(self, topic: str, handler: MessageHandler) -> int:
        """Deliver until the topic is empty; returns the number of deliveries."""
        deliveries = 0
        while self.deliver(topic, handler):
            deliveries += 1
        return deliveries


class InMemoryQueueConsumer:
    """Polling consumer over an InMemoryQueue, mirroring KafkaQueueConsumer."""

    def __init__(self, queue: InMemoryQueue, poll_interval: float = 0.1):
        self.queue = queue
        self.poll_interval = poll_interval
        self.topics: list[str] = []
        self.stats = {"messages_processed": 0, "start_time": time.time()}
        self._running = False

    def subscribe(self, topics: list[str]) -> None:
        self.topics = list(topics)

    def process_messages(self, handler: MessageHandler) -> None:
        self._running = True
        while self._running:
            delivered = False
            for topic in self.topics:
                if self.queue.deliver(topic, handler):
                    delivered = True
                    self.stats["messages_processed"] += 1
            if not delivered:
                time.sleep(self.poll_interval)

    def stop(self) -> None:
        self._running = False

    def close(self) -> None:
        self.stop()


_memory_queue: InMemoryQueue | None = None


def _shared_memory_queue() -> InMemoryQueue:
    global _memory_queue
    if _memory_queue is None:
        _memory_queue = InMemoryQueue()
    return _memory_queue


def build_queue(backend: str | None = None, client_id: str = "retail-pipeline") -> QueueTransport:
    """Create the producer side selected by QUEUE_BACKEND."""
    backend = backend or config.QUEUE_BACKEND
    if backend == "memory":
        return _shared_memory_queue()
    if backend == "kafka":
        return KafkaQueue(config.KAFKA_BOOTSTRAP_SERVERS, client_id=client_id)
    raise ValueError(f"Unknown queue backend: {backend}")


def build_consumer(group_id: str | None = None, backend: str | None = None) -> QueueConsumer:
    """Create the consumer side selected by QUEUE_BACKEND."""
    backend = backend or config.QUEUE_BACKEND
    if backend == "memory":
        return InMemoryQueueConsumer(_shared_memory_queue())
    if backend == "kafka":
        return KafkaQueueConsumer(
            config.KAFKA_BOOTSTRAP_SERVERS,
            group_id or config.KAFKA_CONSUMER_GROUP,
            poison_queue=KafkaQueue(config.KAFKA_BOOTSTRAP_SERVERS, client_id="poison-mover"),
        )
    raise ValueError(f"Unknown queue backend: {backend}")


def check_queue_connection(backend: str | None = None) -> bool:
    """Readiness probe for the configured transport."""
    backend = backend or config.QUEUE_BACKEND
    if backend == "memory":
        return True
    try:
        admin = AdminClient({"bootstrap.servers": config.KAFKA_BOOTSTRAP_SERVERS})
        return bool(admin.list_topics(timeout=5))
    except Exception as e:
        logger.error(f"Kafka connection failed: {e}")
        return False
