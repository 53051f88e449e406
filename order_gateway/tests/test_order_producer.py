"""Unit tests for the OrderProducer class."""

import json
from unittest.mock import MagicMock

import pytest

from order_gateway.producer import OrderProducer
from retail_common.errors import EnqueueError
from retail_common.schemas import OrderRequest


def test_producer_initialization():
    """OrderProducer publishes to order-processing unless told otherwise."""
    mock_queue = MagicMock()

    producer = OrderProducer(mock_queue)

    assert producer.queue == mock_queue
    assert producer.topic == "order-processing"


def test_submit_enqueues_once(test_order):
    """Submitting enqueues exactly one message keyed by customer.

    Verifies that:
        - The request is published to the order-processing topic
        - The message key is the customer ID
        - The acknowledgement reports the request as queued
    """
    mock_queue = MagicMock()
    producer = OrderProducer(mock_queue)

    ack = producer.submit(test_order)

    mock_queue.enqueue.assert_called_once_with(
        "order-processing", test_order.to_message(), key=test_order.customer_id
    )
    assert ack.status == "queued"
    assert ack.message == "Order submitted for processing"


def test_submit_preserves_all_fields(test_producer, queue, test_order):
    """The queued payload carries every request field unchanged."""
    test_producer.submit(test_order)

    messages = queue.messages("order-processing")
    assert len(messages) == 1
    body = json.loads(messages[0].payload)
    assert body["customerId"] == "cust-12345"
    assert body["username"] == "jdoe"
    assert body["productId"] == "prod-001"
    assert body["productName"] == "Espresso Machine"
    assert body["quantity"] == 2
    assert body["unitPrice"] == 149.99
    assert body["totalPrice"] == 299.98
    assert body["status"] == "Submitted"
    assert "idempotencyKey" not in body
    assert OrderRequest.model_validate_json(messages[0].payload) == test_order


def test_submit_does_not_validate_values(test_producer, queue, test_order):
    """Negative quantities and arbitrary statuses are queued as-is."""
    odd = test_order.model_copy(update={"quantity": -3, "status": "Delivered"})

    test_producer.submit(odd)

    body = json.loads(queue.messages("order-processing")[0].payload)
    assert body["quantity"] == -3
    assert body["status"] == "Delivered"


def test_submit_propagates_enqueue_failure(test_order):
    mock_queue = MagicMock()
    mock_queue.enqueue.side_effect = EnqueueError("order-processing", "broker down")

    with pytest.raises(EnqueueError):
        OrderProducer(mock_queue).submit(test_order)
