"""Application tests for CancelOrder: refund, payment and stock in one unit of work."""

import json

import pytest
from marketplace.order.cancellation import CancelOrder
from marketplace.order.checkout import PlaceOrder
from marketplace.order.order import Order
from marketplace.payment.payment import Payment
from marketplace.shared.errors import ExternalServiceError, InvalidTransition
from marketplace.shared.status import OrderStatus, PaymentStatus
from marketplace.stock.stock import ProductStock, load_stock
from protean import UnitOfWork, current_domain
from protean.exceptions import ExpectedVersionError, ValidationError


def _paid_order(payment_intent_id="pi_001"):
    repo = current_domain.repository_for(ProductStock)
    repo.add(ProductStock(product_id="prod-a", creator_id="creator-001", available=10))
    repo.add(ProductStock(product_id="prod-b", creator_id="creator-001", available=5))

    order_id = current_domain.process(
        PlaceOrder(
            customer_id="cust-001",
            creator_id="creator-001",
            items=json.dumps(
                [
                    {"product_id": "prod-a", "title": "Mug", "quantity": 3, "unit_price": 1000},
                    {"product_id": "prod-b", "title": "Vase", "quantity": 1, "unit_price": 2000},
                ]
            ),
            shipping_address=json.dumps(
                {"street": "3 quai Saint-Vincent", "city": "Lyon", "postal_code": "69001", "country": "FR"}
            ),
            payment_intent_id=payment_intent_id,
        ),
        asynchronous=False,
    )

    order_repo = current_domain.repository_for(Order)
    payment_repo = current_domain.repository_for(Payment)
    order = order_repo.get(order_id)
    order.mark_paid(payment_intent_id)
    order_repo.add(order)
    payment = payment_repo.find_by_order(order_id)
    if payment_intent_id:
        payment.mark_as_succeeded(payment_intent_id)
        payment_repo.add(payment)
    return order_id


def _cancel(order_id, **overrides):
    params = {"order_id": order_id, "reason": "Changed my mind"}
    params.update(overrides)
    return current_domain.process(CancelOrder(**params), asynchronous=False)


def _available(product_id):
    return current_domain.repository_for(ProductStock).get(product_id).available


class TestCancelOrder:
    def test_order_canceled_with_refund_reference(self, gateway):
        order_id = _paid_order()
        result = _cancel(order_id)

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.CANCELED.value
        assert order.stripe_refund_id == result["refund_id"]
        assert result["refund_id"].startswith("re_fake_")

    def test_full_refund_requested_once(self, gateway):
        order_id = _paid_order()
        _cancel(order_id)

        assert len(gateway.refund_calls) == 1
        call = gateway.refund_calls[0]
        assert call["payment_intent_id"] == "pi_001"
        assert call["amount"] == 5000
        assert call["idempotency_key"] == f"cancel-{order_id}"

    def test_payment_refunded(self, gateway):
        order_id = _paid_order()
        result = _cancel(order_id)

        payment = current_domain.repository_for(Payment).find_by_order(order_id)
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.stripe_refund_id == result["refund_id"]

    def test_stock_restored(self, gateway):
        order_id = _paid_order()
        assert _available("prod-a") == 7
        _cancel(order_id)
        assert _available("prod-a") == 10
        assert _available("prod-b") == 5

    def test_second_cancel_fails_and_restores_nothing(self, gateway):
        order_id = _paid_order()
        _cancel(order_id)

        with pytest.raises(InvalidTransition):
            _cancel(order_id)

        assert _available("prod-a") == 10
        assert len(gateway.refund_calls) == 1

    def test_refund_failure_leaves_order_paid(self, gateway):
        gateway.configure(should_succeed=False, failure_reason="Charge already refunded")
        order_id = _paid_order()

        with pytest.raises(ExternalServiceError):
            _cancel(order_id)

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PAID.value
        payment = current_domain.repository_for(Payment).find_by_order(order_id)
        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert _available("prod-a") == 7

    def test_cancel_without_captured_payment_skips_refund(self, gateway):
        order_id = _paid_order(payment_intent_id=None)
        result = _cancel(order_id)

        assert result["refund_id"] is None
        assert gateway.refund_calls == []
        assert _available("prod-a") == 10

    def test_shipped_order_cannot_be_canceled(self, gateway):
        order_id = _paid_order()
        repo = current_domain.repository_for(Order)
        order = repo.get(order_id)
        order.record_shipment("Colissimo", "6A12345678901")
        repo.add(order)

        with pytest.raises(InvalidTransition):
            _cancel(order_id)
        assert gateway.refund_calls == []

    def test_other_customer_cannot_cancel(self, gateway):
        order_id = _paid_order()
        with pytest.raises(ValidationError):
            _cancel(order_id, customer_id="cust-999")
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PAID.value


class TestConcurrentCancel:
    def test_stale_copy_cannot_commit_second_cancellation(self, gateway):
        order_id = _paid_order()
        order_repo = current_domain.repository_for(Order)
        stale = order_repo.get(order_id)

        _cancel(order_id)

        with pytest.raises(ExpectedVersionError):
            with UnitOfWork():
                cancellation = stale.cancel("Clicked twice")
                for line in cancellation.restock:
                    stock = load_stock(line.product_id)
                    stock.restore(line.quantity, order_id=order_id, reason="order_cancelled")
                    current_domain.repository_for(ProductStock).add(stock)
                order_repo.add(stale)

        order = order_repo.get(order_id)
        assert order.status == OrderStatus.CANCELED.value
        assert order.cancellation_reason == "Changed my mind"
        assert _available("prod-a") == 10
        assert _available("prod-b") == 5
        assert len(gateway.refund_calls) == 1
