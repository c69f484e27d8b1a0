"""Domain events for the Subscription aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Subscription")
class SubscriptionStarted:
    __version__ = 1

    subscription_id = Identifier(required=True)
    creator_id = Identifier(required=True)
    plan = String(required=True)
    commission_rate = Float(required=True)
    started_at = DateTime(required=True)


@marketplace.event(part_of="Subscription")
class SubscriptionSynced:
    """Local subscription state was aligned with the provider's."""

    __version__ = 1

    subscription_id = Identifier(required=True)
    status = String(required=True)
    plan = String(required=True)
    price_id = String()
    synced_at = DateTime(required=True)


@marketplace.event(part_of="Subscription")
class SubscriptionCancelled:
    __version__ = 1

    subscription_id = Identifier(required=True)
    creator_id = Identifier(required=True)
    cancelled_at = DateTime(required=True)
