"""FastAPI entry point for the Order Processor."""

import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI
from retail_common import config
from retail_common.store import build_store
from retail_common.transport import QueueConsumer, build_queue, check_queue_connection

from .consumer import consume_orders, create_consumer
from .logger import logger
from .notifier import OrderNotifier
from .processor import OrderProcessor


class ProcessorState:
    """Class to manage the running consumer."""

    def __init__(self):
        self.processor: OrderProcessor | None = None
        self.consumer: QueueConsumer | None = None
        self.thread: threading.Thread | None = None


state = ProcessorState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    queue = build_queue(client_id="order-processor")
    state.processor = OrderProcessor(build_store(), OrderNotifier(queue))
    state.consumer = create_consumer()
    state.thread = threading.Thread(target=consume_orders, args=(state.processor, state.consumer), daemon=True)
    state.thread.start()
    logger.info(f"Consumer thread started | store={config.STORE_BACKEND} | queue={config.QUEUE_BACKEND}")
    yield
    # Shutdown
    state.consumer.stop()
    state.thread.join(timeout=5)
    logger.info("Shutdown complete")


app = FastAPI(title="Order Processor", lifespan=lifespan)


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/ready")
def readiness_check():
    """Readiness check: consumer thread alive and queue reachable."""
    consumer_alive = state.thread is not None and state.thread.is_alive()
    queue_ok = check_queue_connection()
    ready = consumer_alive and queue_ok
    return {"status": "ready" if ready else "not ready", "consumer": consumer_alive, "queue": queue_ok}


@app.get("/stats")
async def stats():
    """Processing counters since startup."""
    if state.processor is None:
        return {}
    return state.processor.stats
