"""Tests for the checkout flow and the gateway client."""

import json
from unittest.mock import Mock

import pytest
import requests

from checkout_service.checkout import CheckoutFlow
from checkout_service.client import GatewayClient
from checkout_service.schemas import CheckoutRequest
from retail_common.errors import EnqueueError, InsufficientStockError
from retail_common.schemas import OrderRequest


@pytest.fixture
def checkout_request():
    return CheckoutRequest(customer_id="cust-12345", username="jdoe", product_id="prod-001", quantity=2)


@pytest.fixture
def mock_requests(mocker):
    """Mock requests for the gateway API."""
    mock = mocker.patch("checkout_service.client.requests")
    mock.RequestException = requests.RequestException
    return mock


def test_checkout_submits_priced_order(flow, queue, store, checkout_request):
    result = flow.checkout(checkout_request)

    assert result.status == "queued"
    assert result.remaining_stock == 8
    assert store.get("products", "prod-001").data["stockAvailable"] == 8

    messages = queue.messages("order-processing")
    assert len(messages) == 1
    order = json.loads(messages[0].payload)
    assert order["productName"] == "Espresso Machine"
    assert order["unitPrice"] == 149.99
    assert order["totalPrice"] == pytest.approx(299.98)
    assert order["status"] == "Submitted"
    assert "idempotencyKey" not in order


def test_checkout_publishes_stock_update(flow, queue, checkout_request):
    flow.checkout(checkout_request)

    messages = queue.messages("stock-updates")
    assert len(messages) == 1
    event = json.loads(messages[0].payload)
    assert event["productId"] == "prod-001"
    assert event["previousStock"] == 10
    assert event["newStock"] == 8
    assert event["updatedBy"] == "Order System"


def test_checkout_passes_idempotency_key(flow, queue):
    request = CheckoutRequest(
        customer_id="cust-12345", username="jdoe", product_id="prod-001", quantity=1, idempotency_key="cart-42"
    )
    flow.checkout(request)

    order = json.loads(queue.messages("order-processing")[0].payload)
    assert order["idempotencyKey"] == "cart-42"


def test_insufficient_stock_submits_nothing(flow, queue):
    request = CheckoutRequest(customer_id="cust-1", username="jdoe", product_id="prod-001", quantity=11)

    with pytest.raises(InsufficientStockError):
        flow.checkout(request)
    assert queue.pending("order-processing") == 0
    assert queue.pending("stock-updates") == 0


def test_submission_failure_releases_stock(inventory, queue, store, checkout_request):
    submitter = Mock()
    submitter.submit.side_effect = EnqueueError("order-processing", "gateway down")
    flow = CheckoutFlow(inventory, submitter, queue)

    with pytest.raises(EnqueueError):
        flow.checkout(checkout_request)
    assert store.get("products", "prod-001").data["stockAvailable"] == 10
    assert queue.pending("stock-updates") == 0


def test_stock_update_failure_is_swallowed(inventory, checkout_request):
    submitter = Mock()
    broken_queue = Mock()
    broken_queue.enqueue.side_effect = EnqueueError("stock-updates", "broker down")
    flow = CheckoutFlow(inventory, submitter, broken_queue)

    result = flow.checkout(checkout_request)

    assert result.remaining_stock == 8
    submitter.submit.assert_called_once()


def test_gateway_client_posts_order(mock_requests):
    mock_requests.post.return_value.status_code = 202
    mock_requests.post.return_value.json.return_value = {"message": "Order submitted for processing", "status": "queued"}
    request = OrderRequest(
        customer_id="cust-1",
        username="jdoe",
        product_id="prod-001",
        product_name="Espresso Machine",
        order_date="2025-04-24T10:00:00Z",
        quantity=1,
        unit_price=149.99,
        total_price=149.99,
    )

    ack = GatewayClient("http://gateway:8000/").submit(request)

    assert ack["status"] == "queued"
    args, kwargs = mock_requests.post.call_args
    assert args[0] == "http://gateway:8000/orders"
    assert json.loads(kwargs["data"])["customerId"] == "cust-1"


def test_gateway_client_rejects_non_202(mock_requests):
    mock_requests.post.return_value.status_code = 500
    mock_requests.post.return_value.text = "boom"
    request = Mock()
    request.to_message.return_value = b"{}"

    with pytest.raises(EnqueueError):
        GatewayClient("http://gateway:8000").submit(request)


def test_gateway_client_unreachable(mock_requests):
    mock_requests.post.side_effect = requests.ConnectionError("refused")
    request = Mock()
    request.to_message.return_value = b"{}"

    with pytest.raises(EnqueueError):
        GatewayClient("http://gateway:8000").submit(request)


def test_release_failure_keeps_submission_error(inventory, queue, store, checkout_request):
    """A product removed before release does not mask the original failure."""
    submitter = Mock()

    def fail_after_product_removed(request):
        store.delete("products", "prod-001")
        raise EnqueueError("order-processing", "gateway down")

    submitter.submit.side_effect = fail_after_product_removed
    flow = CheckoutFlow(inventory, submitter, queue)

    with pytest.raises(EnqueueError):
        flow.checkout(checkout_request)
