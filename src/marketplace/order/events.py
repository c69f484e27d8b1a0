"""Domain events for the Order aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A customer placed an order with a creator; payment is pending."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    creator_id = Identifier(required=True)
    total_amount = Integer(required=True)
    currency = String(required=True)
    item_count = Integer(required=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderPaid:
    """Payment for the order was confirmed by the provider."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_intent_id = String()
    total_amount = Integer(required=True)
    paid_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCancelled:
    """A paid order was cancelled before shipment."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    refund_required = Boolean(default=False)
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderShipped:
    """The creator handed the order to a carrier."""

    __version__ = 1

    order_id = Identifier(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    shipped_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderDelivered:
    """The order reached the customer; return window and escrow clock start."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class DisputeOpened:
    """The customer disputed a delivered order."""

    __version__ = 1

    order_id = Identifier(required=True)
    opened_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderRefunded:
    """A delivered order was refunded through the return workflow."""

    __version__ = 1

    order_id = Identifier(required=True)
    refund_reference = String(required=True)
    refunded_at = DateTime(required=True)
