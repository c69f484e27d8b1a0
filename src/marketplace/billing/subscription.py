"""Subscription aggregate: a creator's paid plan.

The plan determines the commission rate applied to the creator's orders.
Status is driven by the payment provider through webhooks:

    ACTIVE → PAST_DUE → ACTIVE, ACTIVE/PAST_DUE → PAUSED → ACTIVE, any → CANCELED

Provider events may repeat, so ``cancel`` and ``sync_from_provider`` only
change what differs and report whether anything did.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.billing.events import SubscriptionCancelled, SubscriptionStarted, SubscriptionSynced
from marketplace.billing.plans import Plan, commission_rate_for, plan_for_price
from marketplace.config import get_settings
from marketplace.domain import marketplace


class SubscriptionStatus(Enum):
    ACTIVE = "Active"
    PAST_DUE = "Past_Due"
    CANCELED = "Canceled"
    PAUSED = "Paused"


@marketplace.aggregate
class Subscription:
    creator_id = Identifier(required=True)
    plan = String(choices=Plan, default=Plan.ESSENTIEL.value)
    status = String(choices=SubscriptionStatus, default=SubscriptionStatus.ACTIVE.value)
    commission_rate = Float(required=True, min_value=0.0, max_value=1.0)
    stripe_subscription_id = String(max_length=255)
    stripe_customer_id = String(max_length=255)
    stripe_price_id = String(max_length=255)
    current_period_start = DateTime()
    current_period_end = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def start(
        cls,
        creator_id,
        plan=Plan.ESSENTIEL.value,
        stripe_subscription_id=None,
        stripe_customer_id=None,
        stripe_price_id=None,
    ):
        now = datetime.now(UTC)
        plan = Plan(plan)
        subscription = cls(
            creator_id=creator_id,
            plan=plan.value,
            status=SubscriptionStatus.ACTIVE.value,
            commission_rate=commission_rate_for(plan),
            stripe_subscription_id=stripe_subscription_id,
            stripe_customer_id=stripe_customer_id,
            stripe_price_id=stripe_price_id,
            current_period_start=now,
            created_at=now,
            updated_at=now,
        )
        subscription.raise_(
            SubscriptionStarted(
                subscription_id=str(subscription.id),
                creator_id=str(creator_id),
                plan=plan.value,
                commission_rate=subscription.commission_rate,
                started_at=now,
            )
        )
        return subscription

    @property
    def is_active(self):
        return self.status == SubscriptionStatus.ACTIVE.value

    def cancel(self):
        """Cancel the subscription. Returns False if it already was."""
        if self.status == SubscriptionStatus.CANCELED.value:
            return False

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = SubscriptionStatus.CANCELED.value
            self.cancelled_at = now
            self.updated_at = now

        self.raise_(
            SubscriptionCancelled(
                subscription_id=str(self.id),
                creator_id=str(self.creator_id),
                cancelled_at=now,
            )
        )
        return True

    def sync_from_provider(self, status=None, price_id=None, period_start=None, period_end=None):
        """Align with the provider's view.

        ``status`` is a ``SubscriptionStatus`` or None to keep the current one.
        A known price id also moves the subscription to the plan it sells.
        Returns True if anything changed.
        """
        changes = {}
        if status is not None and status.value != self.status:
            changes["status"] = status.value
        if price_id and price_id != self.stripe_price_id:
            changes["stripe_price_id"] = price_id
            plan = plan_for_price(price_id)
            if plan is not None and plan.value != self.plan:
                changes["plan"] = plan.value
                changes["commission_rate"] = commission_rate_for(plan)
        if period_start and period_start != self.current_period_start:
            changes["current_period_start"] = period_start
        if period_end and period_end != self.current_period_end:
            changes["current_period_end"] = period_end

        if not changes:
            return False

        now = datetime.now(UTC)
        with atomic_change(self):
            for field_name, value in changes.items():
                setattr(self, field_name, value)
            if changes.get("status") == SubscriptionStatus.CANCELED.value:
                self.cancelled_at = now
            self.updated_at = now

        self.raise_(
            SubscriptionSynced(
                subscription_id=str(self.id),
                status=self.status,
                plan=self.plan,
                price_id=self.stripe_price_id,
                synced_at=now,
            )
        )
        return True


@marketplace.repository(part_of=Subscription)
class SubscriptionRepository:
    def find_by_stripe_subscription(self, stripe_subscription_id):
        found = self._dao.query.filter(stripe_subscription_id=stripe_subscription_id).all().items
        return found[0] if found else None

    def active_for_creator(self, creator_id):
        found = (
            self._dao.query.filter(creator_id=str(creator_id), status=SubscriptionStatus.ACTIVE.value).all().items
        )
        return found[0] if found else None


def commission_rate_for_creator(creator_id):
    """Rate of the creator's active plan, or the default rate without one."""
    subscription = current_domain.repository_for(Subscription).active_for_creator(creator_id)
    if subscription is None:
        return get_settings().default_commission_rate
    return subscription.commission_rate
