"""Tests for the Order Processor service wiring."""

import time
from http import HTTPStatus
from threading import Thread
from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from order_gateway.producer import OrderProducer
from order_processor.consumer import consume_orders, create_consumer
from order_processor.server import app, state
from retail_common.schemas import OrderRequest
from retail_common.transport import InMemoryQueueConsumer


@pytest.fixture
def test_client():
    """Fixture for creating a test client."""
    yield TestClient(app)
    state.processor = None
    state.thread = None


def test_health_check(test_client):
    """Test the basic health check endpoint."""
    response = test_client.get("/health")
    assert response.status_code == HTTPStatus.OK
    assert response.json() == {"status": "healthy"}


@patch("order_processor.server.check_queue_connection", return_value=True)
def test_readiness_check_success(mock_check, test_client):
    """Test the readiness check when the consumer runs and the queue is reachable."""
    state.thread = Mock()
    state.thread.is_alive.return_value = True

    response = test_client.get("/health/ready")
    assert response.status_code == HTTPStatus.OK
    assert response.json() == {"status": "ready", "consumer": True, "queue": True}


@patch("order_processor.server.check_queue_connection", return_value=False)
def test_readiness_check_queue_down(mock_check, test_client):
    response = test_client.get("/health/ready")
    assert response.json() == {"status": "not ready", "consumer": False, "queue": False}


def test_stats(test_client, processor, valid_payload):
    state.processor = processor
    processor.handle(valid_payload)
    processor.handle(b"garbage")

    response = test_client.get("/stats")
    assert response.status_code == HTTPStatus.OK
    assert response.json() == {"created": 1, "duplicates": 0, "dropped": 1, "notification_failures": 0}


@patch("order_processor.consumer.build_consumer")
def test_create_consumer(mock_build_consumer):
    """Test consumer creation uses the processor's group."""
    create_consumer()
    mock_build_consumer.assert_called_once_with(group_id="order-processor")


def test_consume_orders_subscribes_and_dispatches(processor):
    mock_consumer = Mock()

    consume_orders(processor, consumer=mock_consumer)

    mock_consumer.subscribe.assert_called_once_with(["order-processing"])
    mock_consumer.process_messages.assert_called_once_with(processor.handle)


def test_submitted_request_becomes_order(processor, store, queue):
    """A request accepted by the gateway producer is persisted and announced."""
    request = OrderRequest(
        customer_id="cust-1",
        username="jdoe",
        product_id="prod-001",
        product_name="Espresso Machine",
        order_date="2025-04-24T10:00:00Z",
        quantity=2,
        unit_price=149.99,
        total_price=299.98,
    )
    OrderProducer(queue).submit(request)

    consumer = InMemoryQueueConsumer(queue, poll_interval=0.01)
    thread = Thread(target=consume_orders, args=(processor, consumer), daemon=True)
    thread.start()
    deadline = time.monotonic() + 5
    while processor.stats["created"] < 1 and time.monotonic() < deadline:
        time.sleep(0.01)
    consumer.stop()
    thread.join(timeout=5)

    orders = store.scan("orders")
    assert len(orders) == 1
    assert orders[0].data["customerId"] == "cust-1"
    assert queue.pending("order-processing") == 0
    assert queue.pending("order-notifications") == 1
