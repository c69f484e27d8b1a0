"""ReturnRequest aggregate: post-delivery return and refund workflow.

State Machine:
    REQUESTED → APPROVED → SHIPPED_BACK → RECEIVED → REFUNDED
    REQUESTED → REJECTED

REFUNDED and REJECTED are terminal. A rejected return no longer blocks a
new request on the same order.

A return is opened against a DELIVERED order no later than
``RETURN_WINDOW`` after its delivery. When the customer selects items,
the refundable amount is the sum of quantity times purchased unit price over
the selection only; otherwise the whole order total is refundable.
"""

from collections import Counter
from datetime import UTC, datetime, timedelta

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text

from marketplace.domain import marketplace
from marketplace.returns.events import (
    ReturnApproved,
    ReturnReceived,
    ReturnRefunded,
    ReturnRejected,
    ReturnRequested,
    ReturnShippedBack,
)
from marketplace.shared.errors import InvalidTransition, ReturnWindowExpired
from marketplace.shared.money import DEFAULT_CURRENCY
from marketplace.shared.status import (
    TERMINAL_RETURN_STATUSES,
    OrderStatus,
    ReturnReason,
    ReturnStatus,
    parse_choice,
)

RETURN_WINDOW = timedelta(days=14)

_VALID_TRANSITIONS = {
    ReturnStatus.REQUESTED: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: {ReturnStatus.SHIPPED_BACK},
    ReturnStatus.SHIPPED_BACK: {ReturnStatus.RECEIVED},
    ReturnStatus.RECEIVED: {ReturnStatus.REFUNDED},
    ReturnStatus.REFUNDED: set(),  # Terminal
    ReturnStatus.REJECTED: set(),  # Terminal
}


def _as_utc(value):
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def return_window_closes_at(order):
    """Last instant a return may be requested for a delivered order."""
    if order.delivered_at is None:
        return None
    return _as_utc(order.delivered_at) + RETURN_WINDOW


def days_remaining_in_window(order, now=None):
    """Whole days left to request a return, never negative."""
    closes_at = return_window_closes_at(order)
    if closes_at is None:
        return 0
    remaining = closes_at - _as_utc(now or datetime.now(UTC))
    return max(remaining.days, 0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="ReturnRequest")
class ReturnItem:
    """A product and quantity selected for a partial return."""

    product_id = Identifier(required=True)
    title = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class ReturnRequest:
    order_id = Identifier(required=True)
    order_number = String(max_length=50)
    creator_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)

    reason = String(choices=ReturnReason, required=True)
    reason_details = Text()
    status = String(choices=ReturnStatus, default=ReturnStatus.REQUESTED.value)
    items = HasMany(ReturnItem)
    refund_amount = Integer(required=True, min_value=0)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)

    rejection_reason = String(max_length=500)
    return_carrier = String(max_length=100)
    return_tracking_number = String(max_length=255)
    stripe_refund_id = String(max_length=255)

    created_at = DateTime()
    approved_at = DateTime()
    rejected_at = DateTime()
    shipped_back_at = DateTime()
    received_at = DateTime()
    refunded_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def rejection_reason_only_when_rejected(self):
        if self.rejection_reason and self.status != ReturnStatus.REJECTED.value:
            raise ValidationError({"rejection_reason": ["Rejection reason is only set on rejected returns"]})

    @invariant.post
    def refund_reference_only_when_refunded(self):
        if self.stripe_refund_id and self.status != ReturnStatus.REFUNDED.value:
            raise ValidationError({"stripe_refund_id": ["Refund reference is only set on refunded returns"]})

    @invariant.post
    def refund_amount_matches_selected_items(self):
        if self.items and self.refund_amount != sum(i.quantity * i.unit_price for i in self.items):
            raise ValidationError({"refund_amount": ["Refund amount must equal the selected items"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, order, reason, reason_details=None, items=None, now=None):
        """Open a return against a delivered order.

        Args:
            order: The Order being returned (read only).
            reason: A ``ReturnReason`` value or name.
            items: Optional list of dicts with product_id and quantity.
                Unit prices always come from the order.
            now: Request time, defaults to the current time.
        """
        if OrderStatus(order.status) != OrderStatus.DELIVERED or order.delivered_at is None:
            raise InvalidTransition("Returns can only be requested for delivered orders")

        now = _as_utc(now or datetime.now(UTC))
        closes_at = return_window_closes_at(order)
        if now > closes_at:
            raise ReturnWindowExpired(f"The {RETURN_WINDOW.days}-day return window closed on {closes_at.isoformat()}")

        reason = parse_choice(ReturnReason, reason, "reason")

        selected = Counter()
        for entry in items or []:
            quantity = int(entry.get("quantity", 0))
            if quantity < 1:
                raise ValidationError({"items": ["Returned quantity must be at least 1"]})
            selected[str(entry["product_id"])] += quantity

        return_items = []
        for product_id, quantity in selected.items():
            purchased = order.purchased_quantity(product_id)
            if purchased == 0:
                raise ValidationError({"items": [f"Product {product_id} is not part of this order"]})
            if quantity > purchased:
                raise ValidationError(
                    {"items": [f"Cannot return {quantity} of product {product_id}; only {purchased} purchased"]}
                )
            line = next(i for i in order.items if str(i.product_id) == product_id)
            return_items.append(
                ReturnItem(
                    product_id=product_id,
                    title=line.title,
                    quantity=quantity,
                    unit_price=order.unit_price_of(product_id),
                )
            )

        if return_items:
            refund_amount = sum(i.quantity * i.unit_price for i in return_items)
        else:
            refund_amount = order.total_amount

        request = cls(
            order_id=str(order.id),
            order_number=order.order_number,
            creator_id=str(order.creator_id),
            customer_id=str(order.customer_id),
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            reason=reason.value,
            reason_details=reason_details,
            status=ReturnStatus.REQUESTED.value,
            refund_amount=0,
            currency=order.currency,
            created_at=now,
            updated_at=now,
        )
        with atomic_change(request):
            for item in return_items:
                request.add_items(item)
            request.refund_amount = refund_amount

        request.raise_(
            ReturnRequested(
                return_id=str(request.id),
                order_id=str(order.id),
                customer_id=str(order.customer_id),
                creator_id=str(order.creator_id),
                reason=reason.value,
                refund_amount=refund_amount,
                requested_at=now,
            )
        )
        return request

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_active(self):
        return ReturnStatus(self.status) not in TERMINAL_RETURN_STATUSES

    @property
    def is_partial(self):
        return len(self.items) > 0

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status, message=None):
        current = ReturnStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(message or f"Cannot move return from {current.value} to {target_status.value}")

    # -------------------------------------------------------------------
    # Creator decisions
    # -------------------------------------------------------------------
    def approve(self):
        self._assert_can_transition(ReturnStatus.APPROVED, "Only pending returns can be approved")

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = ReturnStatus.APPROVED.value
            self.approved_at = now
            self.updated_at = now

        self.raise_(ReturnApproved(return_id=str(self.id), order_id=str(self.order_id), approved_at=now))

    def reject(self, reason):
        self._assert_can_transition(ReturnStatus.REJECTED, "Only pending returns can be rejected")
        if not reason or not reason.strip():
            raise ValidationError({"rejection_reason": ["A rejection reason is required"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = ReturnStatus.REJECTED.value
            self.rejection_reason = reason.strip()
            self.rejected_at = now
            self.updated_at = now

        self.raise_(
            ReturnRejected(
                return_id=str(self.id),
                order_id=str(self.order_id),
                reason=self.rejection_reason,
                rejected_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Physical return and refund
    # -------------------------------------------------------------------
    def mark_shipped_back(self, tracking_number=None, carrier=None):
        self._assert_can_transition(
            ReturnStatus.SHIPPED_BACK, "Only approved returns can be marked as shipped back"
        )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = ReturnStatus.SHIPPED_BACK.value
            if tracking_number:
                self.return_tracking_number = tracking_number
            if carrier:
                self.return_carrier = carrier
            self.shipped_back_at = now
            self.updated_at = now

        self.raise_(
            ReturnShippedBack(
                return_id=str(self.id),
                order_id=str(self.order_id),
                carrier=self.return_carrier,
                tracking_number=self.return_tracking_number,
                shipped_back_at=now,
            )
        )

    def mark_received(self):
        self._assert_can_transition(ReturnStatus.RECEIVED, "Only returns shipped back can be marked as received")

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = ReturnStatus.RECEIVED.value
            self.received_at = now
            self.updated_at = now

        self.raise_(ReturnReceived(return_id=str(self.id), order_id=str(self.order_id), received_at=now))

    def assert_refundable(self):
        self._assert_can_transition(ReturnStatus.REFUNDED, "Only received returns can be refunded")

    def refund(self, refund_reference):
        self.assert_refundable()
        if not refund_reference or not refund_reference.strip():
            raise ValidationError({"stripe_refund_id": ["Refund reference is required"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = ReturnStatus.REFUNDED.value
            self.stripe_refund_id = refund_reference.strip()
            self.refunded_at = now
            self.updated_at = now

        self.raise_(
            ReturnRefunded(
                return_id=str(self.id),
                order_id=str(self.order_id),
                refund_reference=self.stripe_refund_id,
                amount=self.refund_amount,
                refunded_at=now,
            )
        )


@marketplace.repository(part_of=ReturnRequest)
class ReturnRequestRepository:
    def for_order(self, order_id):
        return self._dao.query.filter(order_id=str(order_id)).all().items

    def active_for_order(self, order_id):
        """The non-terminal return of an order, or None."""
        return next((r for r in self.for_order(order_id) if r.is_active), None)
