"""Domain events for the ReturnRequest aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="ReturnRequest")
class ReturnRequested:
    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    creator_id = Identifier(required=True)
    reason = String(required=True)
    refund_amount = Integer(required=True)
    requested_at = DateTime(required=True)


@marketplace.event(part_of="ReturnRequest")
class ReturnApproved:
    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    approved_at = DateTime(required=True)


@marketplace.event(part_of="ReturnRequest")
class ReturnRejected:
    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String(required=True)
    rejected_at = DateTime(required=True)


@marketplace.event(part_of="ReturnRequest")
class ReturnShippedBack:
    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    carrier = String()
    tracking_number = String()
    shipped_back_at = DateTime(required=True)


@marketplace.event(part_of="ReturnRequest")
class ReturnReceived:
    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    received_at = DateTime(required=True)


@marketplace.event(part_of="ReturnRequest")
class ReturnRefunded:
    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    refund_reference = String(required=True)
    amount = Integer(required=True)
    refunded_at = DateTime(required=True)
