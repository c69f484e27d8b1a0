"""Read-side ledger queries for reporting collaborators."""

from datetime import UTC

from protean.utils.globals import current_domain

from marketplace.ledger.transaction import PlatformTransaction, TransactionType


def _utc(moment):
    return moment.astimezone(UTC) if moment.tzinfo else moment.replace(tzinfo=UTC)


def entries_for_order(order_id):
    return current_domain.repository_for(PlatformTransaction).for_order(order_id)


def entries_for_creator(creator_id):
    return current_domain.repository_for(PlatformTransaction).for_creator(creator_id)


def commission_for_order(order_id):
    """Total commission recognised on an order, in minor units."""
    return sum(
        entry.amount.amount
        for entry in entries_for_order(order_id)
        if entry.type == TransactionType.COMMISSION.value
    )


def captured_revenue(entry_type, since, until):
    """Sum of captured entries of a type created in ``[since, until)``."""
    since, until = _utc(since), _utc(until)
    entries = current_domain.repository_for(PlatformTransaction).captured_of_type(entry_type)
    return sum(entry.amount.amount for entry in entries if since <= _utc(entry.created_at) < until)
