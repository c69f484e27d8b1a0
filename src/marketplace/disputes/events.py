"""Domain events for the Dispute aggregate."""

from protean.fields import DateTime, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Dispute")
class DisputeFiled:
    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    dispute_type = String(required=True)
    filed_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeReviewStarted:
    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    started_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeResolved:
    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    resolution = String(required=True)
    resolved_at = DateTime(required=True)


@marketplace.event(part_of="Dispute")
class DisputeClosed:
    """Closed without a resolution in the customer's favour."""

    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String(required=True)
    closed_at = DateTime(required=True)
