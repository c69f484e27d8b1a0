"""Shared BDD fixtures and step definitions for the marketplace lifecycle."""

from datetime import UTC, datetime, timedelta

import pytest
from marketplace.order.events import (
    DisputeOpened,
    OrderCancelled,
    OrderDelivered,
    OrderPaid,
    OrderPlaced,
    OrderRefunded,
    OrderShipped,
)
from marketplace.order.order import Order
from marketplace.payment.events import PaymentFailed, PaymentProcessing, PaymentRefunded, PaymentSucceeded
from marketplace.returns.events import (
    ReturnApproved,
    ReturnReceived,
    ReturnRefunded,
    ReturnRejected,
    ReturnRequested,
    ReturnShippedBack,
)
from marketplace.shared.errors import first_message
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

# Map event name strings to classes for dynamic lookup
_EVENT_CLASSES = {
    "OrderPlaced": OrderPlaced,
    "OrderPaid": OrderPaid,
    "OrderCancelled": OrderCancelled,
    "OrderShipped": OrderShipped,
    "OrderDelivered": OrderDelivered,
    "DisputeOpened": DisputeOpened,
    "OrderRefunded": OrderRefunded,
    "PaymentProcessing": PaymentProcessing,
    "PaymentSucceeded": PaymentSucceeded,
    "PaymentFailed": PaymentFailed,
    "PaymentRefunded": PaymentRefunded,
    "ReturnRequested": ReturnRequested,
    "ReturnApproved": ReturnApproved,
    "ReturnRejected": ReturnRejected,
    "ReturnShippedBack": ReturnShippedBack,
    "ReturnReceived": ReturnReceived,
    "ReturnRefunded": ReturnRefunded,
}

PAYMENT_INTENT = "pi_bdd_001"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def result():
    """Container for the value returned by a When step."""
    return {"value": None}


def new_order():
    return Order.create(
        customer_id="cust-bdd-001",
        creator_id="creator-bdd-001",
        items_data=[
            {"product_id": "prod-a", "title": "Stoneware mug", "quantity": 2, "unit_price": 1200},
            {"product_id": "prod-b", "title": "Serving platter", "quantity": 1, "unit_price": 3600},
        ],
        shipping_address={
            "recipient": "Camille Martin",
            "street": "12 rue des Lilas",
            "city": "Lyon",
            "postal_code": "69003",
            "country": "FR",
        },
        payment_intent_id=PAYMENT_INTENT,
    )


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a pending order", target_fixture="order")
def pending_order():
    order = new_order()
    order._events.clear()
    return order


@given("the order is paid")
def order_is_paid(order):
    order.mark_paid(PAYMENT_INTENT)
    order._events.clear()


@given("the order is shipped")
def order_is_shipped(order):
    order.record_shipment("Colissimo", "6A12345678901")
    order._events.clear()


@given("the order is delivered")
def order_is_delivered(order):
    order.record_delivery()
    order._events.clear()


@given(parsers.cfparse("an order delivered {days:d} days ago"), target_fixture="order")
def order_delivered_days_ago(days):
    order = new_order()
    order.mark_paid(PAYMENT_INTENT)
    order.record_shipment("Colissimo", "6A12345678901")
    order.record_delivery(datetime.now(UTC) - timedelta(days=days))
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps (shared)
# ---------------------------------------------------------------------------
@then("the action fails with a validation error")
def action_fails_with_validation_error(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse('the action is rejected with "{message}"'))
def action_rejected_with(error, message):
    assert error["exc"] is not None, "Expected the action to be rejected"
    assert first_message(error["exc"]) == message


@then("the action succeeds")
def action_succeeds(error):
    assert error["exc"] is None, f"Unexpected error: {error['exc']}"


@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then(parsers.cfparse("the order raised a {event_type} event"))
def order_raised(order, event_type):
    _assert_raised(order, event_type)


@then(parsers.cfparse("the order raised an {event_type} event"))
def order_raised_an(order, event_type):
    _assert_raised(order, event_type)


@then("the order raised no events")
def order_raised_nothing(order):
    assert not order._events


def _assert_raised(aggregate, event_type):
    event_cls = _EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in aggregate._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in aggregate._events]}"


@pytest.fixture()
def assert_raised():
    return _assert_raised


@pytest.fixture()
def make_order():
    return new_order
