"""Test fixtures for the order gateway tests."""

import pytest
from fastapi.testclient import TestClient

from order_gateway.producer import OrderProducer
from order_gateway.server import app, state
from retail_common.schemas import Order, OrderRequest
from retail_common.store import InMemoryEntityStore
from retail_common.transport import InMemoryQueue


@pytest.fixture
def test_order():
    """Create a test order request fixture.

    Returns:
        OrderRequest: A sample request for two units of one product.
    """
    return OrderRequest(
        customer_id="cust-12345",
        username="jdoe",
        product_id="prod-001",
        product_name="Espresso Machine",
        order_date="2025-04-24T10:00:00Z",
        quantity=2,
        unit_price=149.99,
        total_price=299.98,
    )


@pytest.fixture
def queue():
    return InMemoryQueue()


@pytest.fixture
def store():
    return InMemoryEntityStore()


@pytest.fixture
def test_producer(queue):
    """Create a test producer over an in-memory queue.

    Returns:
        OrderProducer: A producer publishing to order-processing.
    """
    return OrderProducer(queue)


@pytest.fixture
def test_client(store, queue):
    """Test client with the gateway wired to in-memory collaborators."""
    state.configure(store, queue)
    yield TestClient(app)
    state.reset()


@pytest.fixture
def stored_order(store, test_order):
    """An order already persisted in the store."""
    order = Order.from_request("1745488800000_" + "a" * 32, test_order)
    store.insert("orders", order.order_id, order.to_record())
    return order
