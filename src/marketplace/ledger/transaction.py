"""PlatformTransaction aggregate: an immutable ledger entry.

Records money the platform recognises: commission on a sale or a creator's
subscription fee. The identity of an entry is the provider event id that
caused it, so a second write for the same event collides on the primary
key instead of creating a twin. Entries expose no mutators; corrections
are new entries.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, ValueObject

from marketplace.domain import marketplace
from marketplace.shared.money import Money


class TransactionType(Enum):
    COMMISSION = "Commission"
    SUBSCRIPTION = "Subscription"


class TransactionStatus(Enum):
    CAPTURED = "Captured"


@marketplace.event(part_of="PlatformTransaction")
class TransactionRecorded:
    __version__ = 1

    stripe_event_id = String(required=True)
    type = String(required=True)
    amount = Integer(required=True)
    currency = String(required=True)
    creator_id = Identifier(required=True)
    order_id = Identifier()
    subscription_id = Identifier()
    period = DateTime(required=True)


def accounting_period(moment):
    """First instant of the month containing ``moment`` (UTC)."""
    moment = moment.astimezone(UTC) if moment.tzinfo else moment.replace(tzinfo=UTC)
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


@marketplace.aggregate
class PlatformTransaction:
    stripe_event_id = String(identifier=True, max_length=255)
    type = String(choices=TransactionType, required=True)
    status = String(choices=TransactionStatus, default=TransactionStatus.CAPTURED.value)
    amount = ValueObject(Money, required=True)
    creator_id = Identifier(required=True)
    order_id = Identifier()
    subscription_id = Identifier()
    commission_rate = Float()
    period = DateTime(required=True)
    created_at = DateTime()

    @invariant.post
    def commission_references_an_order(self):
        if self.type == TransactionType.COMMISSION.value and not self.order_id:
            raise ValidationError({"order_id": ["Commission entries must reference an order"]})

    @invariant.post
    def subscription_fee_references_a_subscription(self):
        if self.type == TransactionType.SUBSCRIPTION.value and not self.subscription_id:
            raise ValidationError({"subscription_id": ["Subscription entries must reference a subscription"]})

    @classmethod
    def record(
        cls,
        stripe_event_id,
        entry_type,
        amount,
        currency,
        creator_id,
        order_id=None,
        subscription_id=None,
        commission_rate=None,
        occurred_at=None,
    ):
        if not stripe_event_id:
            raise ValidationError({"stripe_event_id": ["Ledger entries need the originating event id"]})

        now = datetime.now(UTC)
        period = accounting_period(occurred_at or now)
        entry = cls(
            stripe_event_id=stripe_event_id,
            type=TransactionType(entry_type).value,
            status=TransactionStatus.CAPTURED.value,
            amount=Money(amount=amount, currency=currency),
            creator_id=creator_id,
            order_id=order_id,
            subscription_id=subscription_id,
            commission_rate=commission_rate,
            period=period,
            created_at=now,
        )
        entry.raise_(
            TransactionRecorded(
                stripe_event_id=stripe_event_id,
                type=entry.type,
                amount=amount,
                currency=currency,
                creator_id=str(creator_id),
                order_id=str(order_id) if order_id else None,
                subscription_id=str(subscription_id) if subscription_id else None,
                period=period,
            )
        )
        return entry


@marketplace.repository(part_of=PlatformTransaction)
class PlatformTransactionRepository:
    def for_order(self, order_id):
        return self._dao.query.filter(order_id=str(order_id)).all().items

    def for_creator(self, creator_id):
        return self._dao.query.filter(creator_id=str(creator_id)).all().items

    def captured_of_type(self, entry_type):
        return (
            self._dao.query.filter(type=TransactionType(entry_type).value, status=TransactionStatus.CAPTURED.value)
            .all()
            .items
        )
