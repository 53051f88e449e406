"""Test fixtures for the checkout service tests."""

import threading

import pytest
from fastapi.testclient import TestClient

from checkout_service.checkout import CheckoutFlow
from checkout_service.inventory import ConcurrencyMode, InventoryCoordinator
from checkout_service.server import app, state
from order_gateway.producer import OrderProducer
from retail_common.schemas import Product
from retail_common.store import InMemoryEntityStore
from retail_common.transport import InMemoryQueue


class BarrierStore(InMemoryEntityStore):
    """Store whose first ``parties`` reads wait for each other.

    Forces concurrent checkouts to read the same stock level before either
    one writes.
    """

    def __init__(self, parties: int = 2):
        super().__init__()
        self._barrier = threading.Barrier(parties, timeout=5)
        self._gated_reads = parties
        self._gate_lock = threading.Lock()

    def get(self, collection, key):
        entity = super().get(collection, key)
        with self._gate_lock:
            gated = self._gated_reads > 0
            self._gated_reads -= 1
        if gated:
            self._barrier.wait()
        return entity


@pytest.fixture
def product():
    return Product(
        product_id="prod-001",
        product_name="Espresso Machine",
        description="15 bar pump",
        price=149.99,
        stock_available=10,
    )


@pytest.fixture
def store(product):
    store = InMemoryEntityStore()
    store.insert("products", product.product_id, product.to_record())
    return store


@pytest.fixture
def barrier_store(product):
    store = BarrierStore()
    store.insert("products", product.product_id, product.to_record())
    return store


@pytest.fixture
def queue():
    return InMemoryQueue()


@pytest.fixture
def inventory(store):
    return InventoryCoordinator(store, mode=ConcurrencyMode.CONDITIONAL)


@pytest.fixture
def flow(inventory, queue):
    return CheckoutFlow(inventory, OrderProducer(queue), queue)


@pytest.fixture
def test_client(flow):
    state.flow = flow
    yield TestClient(app)
    state.flow = None


@pytest.fixture
def checkout_body():
    return {"customerId": "cust-12345", "username": "jdoe", "productId": "prod-001", "quantity": 2}
