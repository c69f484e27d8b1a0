"""Provider webhook envelope: parsing of a verified delivery body.

Stripe delivers ``{"id", "type", "created", "data": {"object": {...}}}``.
The generic ``{"eventId", "eventType", "payload"}`` shape is accepted too,
for collaborators that relay events.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError


class StripeEventType(Enum):
    ACCOUNT_UPDATED = "account.updated"
    INVOICE_PAID = "invoice.paid"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"


class MalformedEnvelope(ValidationError):
    def __init__(self, message):
        super().__init__({"payload": [message]})
        self.message = message


@dataclass(frozen=True)
class WebhookEnvelope:
    event_id: str
    event_type: str
    payload: dict = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def kind(self) -> StripeEventType | None:
        """The recognised event kind, or None for types this core ignores."""
        try:
            return StripeEventType(self.event_type)
        except ValueError:
            return None

    @property
    def occurred_at(self) -> datetime:
        return self.created_at or datetime.now(UTC)


def parse_envelope(raw):
    """Parse a raw delivery body. Raises ``MalformedEnvelope``."""
    try:
        body = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedEnvelope(f"Body is not valid JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise MalformedEnvelope("Body must be a JSON object")

    event_id = body.get("id") or body.get("eventId")
    event_type = body.get("type") or body.get("eventType")
    if not event_id or not event_type:
        raise MalformedEnvelope("Event id and type are required")

    if "data" in body:
        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise MalformedEnvelope("Event data must be an object")
        payload = data.get("object") or {}
    else:
        payload = body.get("payload") or {}
    if not isinstance(payload, dict):
        raise MalformedEnvelope("Event payload must be an object")

    try:
        created_at = from_timestamp(body.get("created"))
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise MalformedEnvelope(f"Event timestamp is not valid: {exc}") from exc

    return WebhookEnvelope(
        event_id=str(event_id),
        event_type=str(event_type),
        payload=payload,
        created_at=created_at,
    )


def from_timestamp(value):
    """Provider epoch seconds to an aware datetime; None passes through."""
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)
