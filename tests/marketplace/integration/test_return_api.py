"""Integration tests for the Returns API via TestClient."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from marketplace.api import register_exception_handlers, return_router
from marketplace.order.order import Order
from marketplace.payment.payment import Payment
from protean import current_domain


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(return_router)
    register_exception_handlers(app)
    return TestClient(app)


def _delivered_order(delivered_at=None):
    order = Order.create(
        customer_id="cust-ret-001",
        creator_id="creator-ret-001",
        items_data=[
            {"product_id": "prod-a", "title": "Stoneware mug", "quantity": 2, "unit_price": 1000},
            {"product_id": "prod-b", "title": "Linen apron", "quantity": 1, "unit_price": 3000},
        ],
        shipping_address={"street": "8 place Bellecour", "city": "Lyon", "postal_code": "69002", "country": "FR"},
        payment_intent_id="pi_ret_001",
    )
    order.mark_paid()
    order.record_shipment("Colissimo", "6A98765432109")
    order.record_delivery(delivered_at or datetime.now(UTC) - timedelta(days=1))
    current_domain.repository_for(Order).add(order)

    payment = Payment.create(order_id=str(order.id), amount=order.total_amount)
    payment.mark_as_succeeded("pi_ret_001")
    current_domain.repository_for(Payment).add(payment)
    return order


def _request(client, order_id, **overrides):
    body = {"order_id": order_id, "customer_id": "cust-ret-001", "reason": "Defective"}
    body.update(overrides)
    return client.post("/returns", json=body)


class TestRequestReturnAPI:
    def test_full_return(self, client):
        order = _delivered_order()
        response = _request(client, str(order.id))

        assert response.status_code == 201
        data = client.get(f"/returns/{response.json()['return_id']}").json()
        assert data["status"] == "Requested"
        assert data["refund_amount"] == 5000
        assert data["is_partial"] is False

    def test_partial_return(self, client):
        order = _delivered_order()
        response = _request(client, str(order.id), items=[{"product_id": "prod-a", "quantity": 1}])

        data = client.get(f"/returns/{response.json()['return_id']}").json()
        assert data["refund_amount"] == 1000
        assert data["is_partial"] is True

    def test_window_closed_returns_409(self, client):
        order = _delivered_order(delivered_at=datetime.now(UTC) - timedelta(days=20))
        response = _request(client, str(order.id))

        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_second_active_return_returns_400(self, client):
        order = _delivered_order()
        _request(client, str(order.id))
        response = _request(client, str(order.id))

        assert response.status_code == 400
        assert response.json()["error"] == "A return is already in progress for this order"

    def test_unknown_return_returns_404(self, client):
        assert client.get("/returns/does-not-exist").status_code == 404


class TestReturnWorkflowAPI:
    def test_full_workflow_refunds_order(self, client, gateway):
        order = _delivered_order()
        return_id = _request(client, str(order.id)).json()["return_id"]
        creator = {"creator_id": "creator-ret-001"}

        assert client.put(f"/returns/{return_id}/approve", json=creator).status_code == 200
        shipped = client.put(
            f"/returns/{return_id}/ship-back",
            json={"customer_id": "cust-ret-001", "carrier": "Mondial Relay", "tracking_number": "MR123"},
        )
        assert shipped.status_code == 200
        assert client.put(f"/returns/{return_id}/receive", json=creator).status_code == 200
        refunded = client.post(f"/returns/{return_id}/refund", json=creator)

        assert refunded.status_code == 200
        refund_id = refunded.json()["refund_id"]
        assert refund_id.startswith("re_fake_")
        assert client.get(f"/returns/{return_id}").json()["stripe_refund_id"] == refund_id
        assert current_domain.repository_for(Order).get(str(order.id)).status == "Refunded"
        assert gateway.refund_calls[0]["amount"] == 5000

    def test_reject(self, client):
        order = _delivered_order()
        return_id = _request(client, str(order.id)).json()["return_id"]

        response = client.put(
            f"/returns/{return_id}/reject",
            json={"creator_id": "creator-ret-001", "reason": "Item shows signs of use"},
        )

        assert response.status_code == 200
        data = client.get(f"/returns/{return_id}").json()
        assert data["status"] == "Rejected"
        assert data["rejection_reason"] == "Item shows signs of use"

    def test_refund_before_receipt_returns_409(self, client, gateway):
        order = _delivered_order()
        return_id = _request(client, str(order.id)).json()["return_id"]
        client.put(f"/returns/{return_id}/approve", json={"creator_id": "creator-ret-001"})

        response = client.post(f"/returns/{return_id}/refund", json={"creator_id": "creator-ret-001"})

        assert response.status_code == 409
        assert response.json()["error"] == "Only received returns can be refunded"
        assert gateway.refund_calls == []

    def test_other_creator_cannot_approve(self, client):
        order = _delivered_order()
        return_id = _request(client, str(order.id)).json()["return_id"]

        response = client.put(f"/returns/{return_id}/approve", json={"creator_id": "creator-other"})
        assert response.status_code == 400

    def test_provider_failure_returns_502(self, client, gateway):
        gateway.configure(should_succeed=False, failure_reason="Insufficient platform balance")
        order = _delivered_order()
        return_id = _request(client, str(order.id)).json()["return_id"]
        creator = {"creator_id": "creator-ret-001"}
        client.put(f"/returns/{return_id}/approve", json=creator)
        client.put(f"/returns/{return_id}/ship-back", json={"customer_id": "cust-ret-001"})
        client.put(f"/returns/{return_id}/receive", json=creator)

        response = client.post(f"/returns/{return_id}/refund", json=creator)

        assert response.status_code == 502
        assert client.get(f"/returns/{return_id}").json()["status"] == "Received"
