"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Payment")
class PaymentProcessing:
    """The provider accepted the payment intent and is processing it."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    payment_intent_id = String(required=True)


@marketplace.event(part_of="Payment")
class PaymentSucceeded:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    payment_intent_id = String(required=True)
    amount = Integer(required=True)
    currency = String(required=True)
    succeeded_at = DateTime(required=True)


@marketplace.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)


@marketplace.event(part_of="Payment")
class PaymentRefunded:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    refund_reference = String(required=True)
    amount = Integer(required=True)
    refunded_at = DateTime(required=True)
