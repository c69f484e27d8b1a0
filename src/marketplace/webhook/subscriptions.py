"""``customer.subscription.updated`` and ``customer.subscription.deleted``."""

from protean import handle
from protean.fields import DateTime, String
from protean.utils.globals import current_domain

from marketplace.billing.subscription import Subscription, SubscriptionStatus
from marketplace.domain import logger, marketplace
from marketplace.webhook.envelope import from_timestamp


def map_provider_status(raw_status):
    """Provider subscription status to ours; None for statuses we do not know."""
    match raw_status:
        case "active" | "trialing":
            return SubscriptionStatus.ACTIVE
        case "past_due" | "incomplete" | "unpaid":
            return SubscriptionStatus.PAST_DUE
        case "canceled" | "incomplete_expired":
            return SubscriptionStatus.CANCELED
        case "paused":
            return SubscriptionStatus.PAUSED
        case _:
            logger.warning("unknown_subscription_status", status=raw_status)
            return None


@marketplace.command(part_of="Subscription")
class SyncSubscription:
    stripe_event_id = String(required=True, max_length=255)
    stripe_subscription_id = String(required=True, max_length=255)
    provider_status = String(max_length=50)
    price_id = String(max_length=255)
    current_period_start = DateTime()
    current_period_end = DateTime()


@marketplace.command(part_of="Subscription")
class CancelSubscription:
    stripe_event_id = String(required=True, max_length=255)
    stripe_subscription_id = String(required=True, max_length=255)


def _first_item(subscription):
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def updated_command_from(envelope):
    subscription = envelope.payload
    item = _first_item(subscription)
    price = item.get("price") or {}
    return SyncSubscription(
        stripe_event_id=envelope.event_id,
        stripe_subscription_id=subscription.get("id"),
        provider_status=subscription.get("status"),
        price_id=price.get("id"),
        # Period bounds moved from the subscription to its items in newer API versions
        current_period_start=from_timestamp(
            subscription.get("current_period_start") or item.get("current_period_start")
        ),
        current_period_end=from_timestamp(subscription.get("current_period_end") or item.get("current_period_end")),
    )


def deleted_command_from(envelope):
    return CancelSubscription(
        stripe_event_id=envelope.event_id,
        stripe_subscription_id=envelope.payload.get("id"),
    )


@marketplace.command_handler(part_of=Subscription)
class SubscriptionWebhookHandler:
    def _load(self, stripe_subscription_id):
        subscription = current_domain.repository_for(Subscription).find_by_stripe_subscription(
            stripe_subscription_id
        )
        if subscription is None:
            logger.warning("subscription_not_found", stripe_subscription_id=stripe_subscription_id)
        return subscription

    @handle(SyncSubscription)
    def sync_subscription(self, command):
        subscription = self._load(command.stripe_subscription_id)
        if subscription is None:
            return False

        status = map_provider_status(command.provider_status) if command.provider_status else None
        changed = subscription.sync_from_provider(
            status=status,
            price_id=command.price_id,
            period_start=command.current_period_start,
            period_end=command.current_period_end,
        )
        if changed:
            current_domain.repository_for(Subscription).add(subscription)
            logger.info(
                "subscription_synced",
                subscription_id=str(subscription.id),
                status=subscription.status,
                plan=subscription.plan,
            )
        return changed

    @handle(CancelSubscription)
    def cancel_subscription(self, command):
        subscription = self._load(command.stripe_subscription_id)
        if subscription is None:
            return False

        if not subscription.cancel():
            return False

        current_domain.repository_for(Subscription).add(subscription)
        logger.info("subscription_cancelled", subscription_id=str(subscription.id))
        return True
