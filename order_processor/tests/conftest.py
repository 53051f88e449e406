"""Test fixtures for the order processor tests."""

import json

import pytest

from order_processor.notifier import OrderNotifier
from order_processor.processor import OrderProcessor
from retail_common.store import InMemoryEntityStore
from retail_common.transport import InMemoryQueue


@pytest.fixture
def store():
    return InMemoryEntityStore()


@pytest.fixture
def queue():
    return InMemoryQueue()


@pytest.fixture
def notifier(queue):
    return OrderNotifier(queue)


@pytest.fixture
def processor(store, notifier):
    return OrderProcessor(store, notifier)


@pytest.fixture
def valid_order():
    """Fixture for a valid order-processing message body."""
    return {
        "customerId": "cust-456",
        "username": "asmith",
        "productId": "prod-123",
        "productName": "Pour Over Kettle",
        "orderDate": "2025-04-24T10:00:00Z",
        "quantity": 3,
        "unitPrice": 10.5,
        "totalPrice": 31.5,
        "status": "Submitted",
    }


@pytest.fixture
def valid_payload(valid_order):
    return json.dumps(valid_order).encode("utf-8")
