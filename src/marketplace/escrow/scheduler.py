"""Escrow release rules.

Funds captured for an order are held until ``ESCROW_HOLD`` after delivery.
They become releasable to the creator only when the payment succeeded and
no return is still open against the order. Everything here is a read-only
query; payouts themselves happen elsewhere.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from protean.utils.globals import current_domain

from marketplace.domain import logger
from marketplace.order.order import Order
from marketplace.payment.payment import Payment
from marketplace.returns.return_request import ReturnRequest
from marketplace.shared.status import PaymentStatus

ESCROW_HOLD = timedelta(hours=48)


@dataclass(frozen=True)
class ReleasableOrder:
    order_id: str
    creator_id: str
    amount: int
    currency: str
    eligible_at: datetime


def _as_utc(value):
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def eligible_for_release_at(order):
    """``delivered_at + ESCROW_HOLD``; None for orders never delivered."""
    if order.delivered_at is None:
        return None
    return _as_utc(order.delivered_at) + ESCROW_HOLD


def is_releasable(order, payment, has_active_return, now=None):
    eligible_at = eligible_for_release_at(order)
    if eligible_at is None:
        return False
    if payment is None or payment.status != PaymentStatus.SUCCEEDED.value:
        return False
    if has_active_return:
        return False
    return _as_utc(now or datetime.now(UTC)) >= eligible_at


def releasable_orders(now=None):
    """Orders whose escrowed funds may be paid out at ``now``."""
    now = _as_utc(now or datetime.now(UTC))
    payment_repo = current_domain.repository_for(Payment)
    return_repo = current_domain.repository_for(ReturnRequest)

    releasable = []
    for order in current_domain.repository_for(Order).delivered():
        payment = payment_repo.find_by_order(order.id)
        has_active_return = return_repo.active_for_order(order.id) is not None
        if is_releasable(order, payment, has_active_return, now):
            releasable.append(
                ReleasableOrder(
                    order_id=str(order.id),
                    creator_id=str(order.creator_id),
                    amount=order.total_amount,
                    currency=order.currency,
                    eligible_at=eligible_for_release_at(order),
                )
            )

    logger.debug("escrow_releasable_computed", count=len(releasable), at=now.isoformat())
    return releasable
