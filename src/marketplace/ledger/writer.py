"""Ledger writer: idempotent appends keyed by the provider event id.

Each provider event produces at most one ledger entry. The entry's
identity is the event id, so storage rejects a second insert for the same
event; the lookup below only turns an ordinary redelivery into a quiet
no-op instead of a rejected unit of work.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.domain import logger
from marketplace.ledger.transaction import PlatformTransaction, TransactionType
from marketplace.shared.money import apply_rate


def record_commission(stripe_event_id, order, commission_rate, occurred_at=None):
    """Record the platform's commission on a paid order.

    The amount is ``round_half_up(order total * rate)``, computed once from
    the order total. Returns True if a new entry was written.
    """
    entry = PlatformTransaction.record(
        stripe_event_id=stripe_event_id,
        entry_type=TransactionType.COMMISSION,
        amount=apply_rate(order.total_amount, commission_rate),
        currency=order.currency,
        creator_id=str(order.creator_id),
        order_id=str(order.id),
        commission_rate=commission_rate,
        occurred_at=occurred_at,
    )
    return _append_once(entry)


def record_subscription_fee(stripe_event_id, subscription, amount, currency, occurred_at=None):
    """Record a paid subscription invoice. Returns True if a new entry was written."""
    entry = PlatformTransaction.record(
        stripe_event_id=stripe_event_id,
        entry_type=TransactionType.SUBSCRIPTION,
        amount=amount,
        currency=currency,
        creator_id=str(subscription.creator_id),
        subscription_id=str(subscription.id),
        occurred_at=occurred_at,
    )
    return _append_once(entry)


def _append_once(entry):
    repo = current_domain.repository_for(PlatformTransaction)
    try:
        repo.get(entry.stripe_event_id)
    except ObjectNotFoundError:
        repo.add(entry)
        logger.info(
            "ledger_entry_recorded",
            stripe_event_id=entry.stripe_event_id,
            type=entry.type,
            amount=entry.amount.amount,
        )
        return True

    logger.info("ledger_entry_already_recorded", stripe_event_id=entry.stripe_event_id)
    return False
