"""Application tests for opening and reviewing disputes."""

from datetime import UTC, datetime, timedelta

import pytest
from marketplace.disputes.dispute import Dispute
from marketplace.disputes.review import CloseDispute, ResolveDispute, StartDisputeReview
from marketplace.order.fulfillment import OpenDispute
from marketplace.order.order import Order
from marketplace.shared.errors import AlreadyFinal, InvalidTransition
from marketplace.shared.status import DisputeStatus, OrderStatus
from protean import current_domain
from protean.exceptions import ValidationError


def _delivered_order():
    order = Order.create(
        customer_id="cust-001",
        creator_id="creator-001",
        items_data=[{"product_id": "prod-a", "title": "Mug", "quantity": 2, "unit_price": 1500}],
        shipping_address={"street": "3 quai Saint-Vincent", "city": "Lyon", "postal_code": "69001", "country": "FR"},
        payment_intent_id="pi_001",
    )
    order.mark_paid("pi_001")
    order.record_shipment("Colissimo", "6A12345678901")
    order.record_delivery(datetime.now(UTC) - timedelta(days=1))
    current_domain.repository_for(Order).add(order)
    return str(order.id)


def _open(order_id, **overrides):
    params = {"order_id": order_id, "customer_id": "cust-001"}
    params.update(overrides)
    return current_domain.process(OpenDispute(**params), asynchronous=False)


def _dispute(dispute_id):
    return current_domain.repository_for(Dispute).get(dispute_id)


class TestOpenDispute:
    def test_order_disputed_and_case_filed(self):
        order_id = _delivered_order()
        dispute_id = _open(order_id, dispute_type="Wrong_Item", description="Received a blue vase, ordered green")

        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.DISPUTE_OPENED.value
        dispute = _dispute(dispute_id)
        assert dispute.order_id == order_id
        assert dispute.status == DisputeStatus.OPEN.value
        assert dispute.dispute_type == "Wrong_Item"

    def test_other_customer_cannot_dispute(self):
        order_id = _delivered_order()
        with pytest.raises(ValidationError):
            _open(order_id, customer_id="cust-999")
        assert current_domain.repository_for(Dispute).for_order(order_id) == []

    def test_second_dispute_rejected(self):
        order_id = _delivered_order()
        _open(order_id)

        with pytest.raises(InvalidTransition):
            _open(order_id)
        assert len(current_domain.repository_for(Dispute).for_order(order_id)) == 1

    def test_invalid_description_leaves_order_delivered(self):
        order_id = _delivered_order()
        with pytest.raises(ValidationError):
            _open(order_id, description="Bad")
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.DELIVERED.value


class TestDisputeReview:
    def test_review_and_resolve(self):
        dispute_id = _open(_delivered_order())

        current_domain.process(StartDisputeReview(dispute_id=dispute_id), asynchronous=False)
        assert _dispute(dispute_id).status == DisputeStatus.UNDER_REVIEW.value

        current_domain.process(
            ResolveDispute(dispute_id=dispute_id, resolution="Creator sent a replacement"), asynchronous=False
        )
        dispute = _dispute(dispute_id)
        assert dispute.status == DisputeStatus.RESOLVED.value
        assert dispute.resolution == "Creator sent a replacement"

    def test_closed_dispute_cannot_be_resolved(self):
        dispute_id = _open(_delivered_order())
        current_domain.process(CloseDispute(dispute_id=dispute_id, reason="Delivery confirmed"), asynchronous=False)

        with pytest.raises(AlreadyFinal):
            current_domain.process(ResolveDispute(dispute_id=dispute_id, resolution="Refund"), asynchronous=False)
        assert _dispute(dispute_id).status == DisputeStatus.CLOSED.value
