import json
from datetime import UTC, datetime

import pytest
from marketplace.webhook.envelope import MalformedEnvelope, StripeEventType, parse_envelope


def _body(**overrides):
    body = {
        "id": "evt_001",
        "type": "payment_intent.succeeded",
        "created": 1772366400,
        "data": {"object": {"id": "pi_001", "amount_received": 5000}},
    }
    body.update(overrides)
    return json.dumps(body).encode()


class TestParseEnvelope:
    def test_provider_shape(self):
        envelope = parse_envelope(_body())
        assert envelope.event_id == "evt_001"
        assert envelope.kind == StripeEventType.PAYMENT_INTENT_SUCCEEDED
        assert envelope.payload["id"] == "pi_001"
        assert envelope.created_at == datetime.fromtimestamp(1772366400, tz=UTC)

    def test_relay_shape(self):
        raw = json.dumps({"eventId": "evt_002", "eventType": "invoice.paid", "payload": {"id": "in_001"}})
        envelope = parse_envelope(raw)
        assert envelope.event_id == "evt_002"
        assert envelope.kind == StripeEventType.INVOICE_PAID
        assert envelope.payload == {"id": "in_001"}

    def test_unrecognised_type_has_no_kind(self):
        envelope = parse_envelope(_body(type="charge.refunded"))
        assert envelope.kind is None

    def test_occurred_at_falls_back_to_now(self):
        envelope = parse_envelope(_body(created=None))
        assert envelope.created_at is None
        assert envelope.occurred_at.tzinfo is not None

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"[1, 2, 3]",
            json.dumps({"type": "invoice.paid"}).encode(),
            json.dumps({"id": "evt_1", "type": "invoice.paid", "data": {"object": "oops"}}).encode(),
            json.dumps({"id": "evt_1", "type": "invoice.paid", "data": ["x"]}).encode(),
            json.dumps({"id": "evt_1", "type": "invoice.paid", "created": "yesterday", "data": {"object": {}}}).encode(),
            json.dumps({"id": "evt_1", "type": "invoice.paid", "created": {"at": 1}, "data": {"object": {}}}).encode(),
        ],
        ids=[
            "invalid-json",
            "not-an-object",
            "missing-id",
            "payload-not-object",
            "data-not-object",
            "created-not-numeric",
            "created-wrong-type",
        ],
    )
    def test_malformed_bodies(self, raw):
        with pytest.raises(MalformedEnvelope):
            parse_envelope(raw)
