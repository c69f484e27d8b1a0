"""Order aggregate: one purchase from one customer to one creator.

State Machine:
    PENDING → PAID → SHIPPED → DELIVERED
    PAID → CANCELED
    DELIVERED → DISPUTE_OPENED
    DELIVERED → REFUNDED (through the return workflow)

CANCELED, DISPUTE_OPENED and REFUNDED are terminal. Orders are never
deleted; terminal orders stay as the audit trail.

The aggregate never talks to the payment provider or to stock records.
``cancel`` returns a ``Cancellation`` describing what the caller has to do:
which quantities to put back in stock and which captured payment to refund.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, ValueObject

from marketplace.domain import marketplace
from marketplace.order.events import (
    DisputeOpened,
    OrderCancelled,
    OrderDelivered,
    OrderPaid,
    OrderPlaced,
    OrderRefunded,
    OrderShipped,
)
from marketplace.shared.errors import InvalidTransition
from marketplace.shared.money import DEFAULT_CURRENCY
from marketplace.shared.status import OrderStatus

# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID},
    OrderStatus.PAID: {OrderStatus.SHIPPED, OrderStatus.CANCELED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.DISPUTE_OPENED, OrderStatus.REFUNDED},
    OrderStatus.CANCELED: set(),  # Terminal
    OrderStatus.DISPUTE_OPENED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

_CANCEL_REJECTIONS = {
    OrderStatus.PENDING: "Order cannot be canceled before its payment is confirmed",
    OrderStatus.CANCELED: "Order is already canceled",
    OrderStatus.SHIPPED: "Order has already shipped and can no longer be canceled",
    OrderStatus.DELIVERED: "Order has already been delivered and can no longer be canceled",
    OrderStatus.DISPUTE_OPENED: "Order is under dispute and can no longer be canceled",
    OrderStatus.REFUNDED: "Order has already been refunded",
}


# ---------------------------------------------------------------------------
# Cancellation outcome
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class StockRestoration:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class RefundInstruction:
    """Refund the caller must issue with the payment provider."""

    payment_intent_id: str
    amount: int
    currency: str


@dataclass(frozen=True)
class Cancellation:
    restock: tuple[StockRestoration, ...]
    refund: RefundInstruction | None = None

    @property
    def refund_required(self) -> bool:
        return self.refund is not None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class ShippingAddress:
    """Where the order is shipped, captured at checkout time."""

    recipient = String(max_length=255)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class OrderItem:
    """A line item. Prices are integer minor units locked at checkout."""

    product_id = Identifier(required=True)
    title = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)
    subtotal = Integer(required=True, min_value=0)

    @invariant.post
    def subtotal_matches_quantity_and_price(self):
        if self.quantity is not None and self.unit_price is not None:
            if self.subtotal != self.quantity * self.unit_price:
                raise ValidationError({"subtotal": ["Line subtotal must equal quantity times unit price"]})


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    order_number = String(max_length=50)
    customer_id = Identifier(required=True)
    creator_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress, required=True)
    total_amount = Integer(required=True, min_value=0)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)

    stripe_payment_intent_id = String(max_length=255)
    stripe_refund_id = String(max_length=255)

    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    cancellation_reason = String(max_length=500)

    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def total_equals_sum_of_subtotals(self):
        expected = sum(item.subtotal or 0 for item in self.items)
        if self.total_amount != expected:
            raise ValidationError({"total_amount": ["Order total must equal the sum of line subtotals"]})

    @invariant.post
    def refund_reference_requires_payment_reference(self):
        if self.stripe_refund_id and not self.stripe_payment_intent_id:
            raise ValidationError({"stripe_refund_id": ["Cannot record a refund without a payment reference"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        customer_id,
        creator_id,
        items_data,
        shipping_address,
        customer_name=None,
        customer_email=None,
        currency=DEFAULT_CURRENCY,
        payment_intent_id=None,
    ):
        """Create a PENDING order from checkout data.

        Args:
            items_data: List of dicts with product_id, title, quantity and
                unit_price (minor units).
            shipping_address: Dict with recipient, street, city,
                postal_code and country.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        items = []
        for data in items_data:
            quantity = int(data["quantity"])
            unit_price = int(data["unit_price"])
            items.append(
                OrderItem(
                    product_id=str(data["product_id"]),
                    title=data.get("title"),
                    quantity=quantity,
                    unit_price=unit_price,
                    subtotal=quantity * unit_price,
                )
            )

        now = datetime.now(UTC)
        order = cls(
            order_number=_generate_order_number(now),
            customer_id=customer_id,
            creator_id=creator_id,
            customer_name=customer_name,
            customer_email=customer_email,
            shipping_address=ShippingAddress(**shipping_address),
            total_amount=0,
            currency=currency,
            status=OrderStatus.PENDING.value,
            stripe_payment_intent_id=payment_intent_id,
            created_at=now,
            updated_at=now,
        )
        with atomic_change(order):
            for item in items:
                order.add_items(item)
            order.total_amount = sum(item.subtotal for item in items)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id),
                creator_id=str(creator_id),
                total_amount=order.total_amount,
                currency=order.currency,
                item_count=len(items),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def purchased_quantity(self, product_id):
        return sum(item.quantity for item in self.items if str(item.product_id) == str(product_id))

    def unit_price_of(self, product_id):
        item = next((i for i in self.items if str(i.product_id) == str(product_id)), None)
        return item.unit_price if item is not None else None

    @property
    def is_delivered(self):
        return self.delivered_at is not None

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status, message=None):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(message or f"Cannot transition order from {current.value} to {target_status.value}")

    # -------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------
    def mark_paid(self, payment_intent_id=None):
        """Record payment confirmation.

        Returns False without changing anything when the order is already
        PAID, so duplicate provider deliveries are harmless.
        """
        if OrderStatus(self.status) == OrderStatus.PAID:
            return False

        self._assert_can_transition(OrderStatus.PAID)
        if payment_intent_id and self.stripe_payment_intent_id and payment_intent_id != self.stripe_payment_intent_id:
            raise InvalidTransition(
                "Order is bound to a different payment reference",
                field="stripe_payment_intent_id",
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.PAID.value
            if payment_intent_id:
                self.stripe_payment_intent_id = payment_intent_id
            self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                payment_intent_id=self.stripe_payment_intent_id,
                total_amount=self.total_amount,
                paid_at=now,
            )
        )
        return True

    def cancel(self, reason):
        """Cancel a paid order before it ships.

        Returns the ``Cancellation`` the caller must act on: every line
        quantity to restore and, when a payment was captured, the refund
        to issue.
        """
        current = OrderStatus(self.status)
        if current != OrderStatus.PAID:
            raise InvalidTransition(_CANCEL_REJECTIONS.get(current, f"Cannot cancel order in {current.value} state"))
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A cancellation reason is required"]})

        restock = tuple(StockRestoration(product_id=str(item.product_id), quantity=item.quantity) for item in self.items)
        refund = None
        if self.stripe_payment_intent_id:
            refund = RefundInstruction(
                payment_intent_id=self.stripe_payment_intent_id,
                amount=self.total_amount,
                currency=self.currency,
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.CANCELED.value
            self.cancellation_reason = reason.strip()
            self.cancelled_at = now
            self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=self.cancellation_reason,
                refund_required=refund is not None,
                cancelled_at=now,
            )
        )
        return Cancellation(restock=restock, refund=refund)

    def record_refund_reference(self, refund_reference):
        """Attach the provider refund issued after a cancellation."""
        if OrderStatus(self.status) != OrderStatus.CANCELED:
            raise InvalidTransition("Refund references are recorded on canceled orders only")
        if not refund_reference:
            raise ValidationError({"refund_reference": ["Refund reference is required"]})
        if self.stripe_refund_id:
            raise InvalidTransition("A refund was already recorded for this order", field="stripe_refund_id")

        self.stripe_refund_id = refund_reference
        self.updated_at = datetime.now(UTC)

    def record_shipment(self, carrier, tracking_number):
        """Hand the order to a carrier."""
        self._assert_can_transition(OrderStatus.SHIPPED, "Only paid orders can be shipped")
        if not carrier or not carrier.strip():
            raise ValidationError({"carrier": ["Carrier is required"]})
        if not tracking_number or not tracking_number.strip():
            raise ValidationError({"tracking_number": ["Tracking number is required"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.SHIPPED.value
            self.carrier = carrier.strip()
            self.tracking_number = tracking_number.strip()
            self.shipped_at = now
            self.updated_at = now

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                carrier=self.carrier,
                tracking_number=self.tracking_number,
                shipped_at=now,
            )
        )

    def record_delivery(self, delivered_at=None):
        """Confirm delivery. ``delivered_at`` anchors the return window and escrow."""
        self._assert_can_transition(OrderStatus.DELIVERED, "Only shipped orders can be marked delivered")

        now = datetime.now(UTC)
        delivered_at = delivered_at or now
        with atomic_change(self):
            self.status = OrderStatus.DELIVERED.value
            self.delivered_at = delivered_at
            self.updated_at = now

        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=delivered_at))

    def open_dispute(self):
        self._assert_can_transition(OrderStatus.DISPUTE_OPENED, "Disputes can only be opened on delivered orders")

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.DISPUTE_OPENED.value
            self.updated_at = now

        self.raise_(DisputeOpened(order_id=str(self.id), opened_at=now))

    def mark_refunded(self, refund_reference):
        """Close a delivered order whose return was refunded."""
        self._assert_can_transition(OrderStatus.REFUNDED, "Only delivered orders can be refunded")
        if not self.stripe_payment_intent_id:
            raise InvalidTransition("Order has no payment reference to refund", field="stripe_payment_intent_id")
        if not refund_reference:
            raise ValidationError({"refund_reference": ["Refund reference is required"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.REFUNDED.value
            self.stripe_refund_id = refund_reference
            self.updated_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                refund_reference=refund_reference,
                refunded_at=now,
            )
        )


@marketplace.repository(part_of=Order)
class OrderRepository:
    def find_by_payment_intent(self, payment_intent_id):
        """The order bound to a provider payment intent, or None."""
        orders = self._dao.query.filter(stripe_payment_intent_id=payment_intent_id).all().items
        return orders[0] if orders else None

    def delivered(self):
        """Orders that carry a delivery timestamp and may hold escrowed funds."""
        result = []
        for status in (OrderStatus.DELIVERED, OrderStatus.DISPUTE_OPENED):
            result.extend(self._dao.query.filter(status=status.value).all().items)
        return result


def _generate_order_number(now):
    """ORD-<base36 millisecond timestamp>-<4 hex chars>."""
    value = int(now.timestamp() * 1000)
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    encoded = ""
    while value:
        value, remainder = divmod(value, 36)
        encoded = digits[remainder] + encoded
    return f"ORD-{encoded or '0'}-{uuid4().hex[:4].upper()}"
