"""Payment aggregate: the financial mirror of one provider payment attempt.

Each Payment belongs to exactly one Order (it references the order; the
order does not own it).

State Machine:
    PENDING → PROCESSING → SUCCEEDED → REFUNDED
    PENDING/PROCESSING → FAILED
    PENDING → SUCCEEDED (provider confirms before we saw the intent)

FAILED and REFUNDED are terminal. Any operation on a terminal payment
raises ``AlreadyFinal``; other disallowed operations raise
``InvalidTransition``. Repeating a transition whose effect already
happened (same provider reference) returns False and changes nothing.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, ValueObject

from marketplace.domain import marketplace
from marketplace.payment.events import (
    PaymentFailed,
    PaymentProcessing,
    PaymentRefunded,
    PaymentSucceeded,
)
from marketplace.shared.errors import AlreadyFinal, IntegrityConflict, InvalidTransition
from marketplace.shared.money import DEFAULT_CURRENCY, Money
from marketplace.shared.status import TERMINAL_PAYMENT_STATUSES, PaymentMethod, PaymentStatus

_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PROCESSING, PaymentStatus.SUCCEEDED, PaymentStatus.FAILED},
    PaymentStatus.PROCESSING: {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED},
    PaymentStatus.SUCCEEDED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),  # Terminal
    PaymentStatus.REFUNDED: set(),  # Terminal
}


@marketplace.aggregate
class Payment:
    order_id = Identifier(required=True)
    customer_id = Identifier()
    creator_id = Identifier()
    amount = ValueObject(Money, required=True)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.CARD.value)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    stripe_payment_intent_id = String(max_length=255)
    stripe_refund_id = String(max_length=255)
    failure_reason = String(max_length=500)
    succeeded_at = DateTime()
    failed_at = DateTime()
    refunded_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def amount_must_be_positive(self):
        if self.amount is not None and self.amount.amount <= 0:
            raise ValidationError({"amount": ["Payment amount must be greater than zero"]})

    @invariant.post
    def refund_reference_only_when_refunded(self):
        if self.stripe_refund_id and self.status != PaymentStatus.REFUNDED.value:
            raise ValidationError({"stripe_refund_id": ["Refund reference is only set on refunded payments"]})

    @invariant.post
    def failure_reason_only_when_failed(self):
        if self.failure_reason and self.status != PaymentStatus.FAILED.value:
            raise ValidationError({"failure_reason": ["Failure reason is only set on failed payments"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_id,
        amount,
        currency=DEFAULT_CURRENCY,
        payment_method=PaymentMethod.CARD.value,
        customer_id=None,
        creator_id=None,
    ):
        now = datetime.now(UTC)
        return cls(
            order_id=order_id,
            customer_id=customer_id,
            creator_id=creator_id,
            amount=Money(amount=amount, currency=currency),
            payment_method=payment_method,
            status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_final(self):
        return PaymentStatus(self.status) in TERMINAL_PAYMENT_STATUSES

    @property
    def can_be_refunded(self):
        return self.status == PaymentStatus.SUCCEEDED.value

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = PaymentStatus(self.status)
        if current in TERMINAL_PAYMENT_STATUSES:
            raise AlreadyFinal(f"Payment is already {current.value}")
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(f"Cannot transition payment from {current.value} to {target_status.value}")

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def mark_as_processing(self, payment_intent_id):
        """Bind the provider payment intent. Repeating with the same intent is a no-op."""
        if not payment_intent_id:
            raise ValidationError({"stripe_payment_intent_id": ["Payment intent reference is required"]})
        if self.status == PaymentStatus.PROCESSING.value and self.stripe_payment_intent_id == payment_intent_id:
            return False

        self._assert_can_transition(PaymentStatus.PROCESSING)

        with atomic_change(self):
            self.status = PaymentStatus.PROCESSING.value
            self.stripe_payment_intent_id = payment_intent_id
            self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentProcessing(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                payment_intent_id=payment_intent_id,
            )
        )
        return True

    def mark_as_succeeded(self, payment_intent_id):
        """Record a successful capture.

        Returns False when the payment already succeeded with this same
        reference. A different reference on a succeeded payment is an
        ``IntegrityConflict``.
        """
        if not payment_intent_id:
            raise ValidationError({"stripe_payment_intent_id": ["Payment intent reference is required"]})

        if self.status == PaymentStatus.SUCCEEDED.value:
            if self.stripe_payment_intent_id == payment_intent_id:
                return False
            raise IntegrityConflict(
                f"Payment {self.id} already succeeded with {self.stripe_payment_intent_id}, got {payment_intent_id}",
                field="stripe_payment_intent_id",
            )

        self._assert_can_transition(PaymentStatus.SUCCEEDED)
        if self.stripe_payment_intent_id and self.stripe_payment_intent_id != payment_intent_id:
            raise IntegrityConflict(
                f"Payment {self.id} is bound to {self.stripe_payment_intent_id}, got {payment_intent_id}",
                field="stripe_payment_intent_id",
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = PaymentStatus.SUCCEEDED.value
            self.stripe_payment_intent_id = payment_intent_id
            self.succeeded_at = now
            self.updated_at = now

        self.raise_(
            PaymentSucceeded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                payment_intent_id=payment_intent_id,
                amount=self.amount.amount,
                currency=self.amount.currency,
                succeeded_at=now,
            )
        )
        return True

    def mark_as_failed(self, reason):
        if not reason or not reason.strip():
            raise ValidationError({"failure_reason": ["A failure reason is required"]})

        self._assert_can_transition(PaymentStatus.FAILED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = PaymentStatus.FAILED.value
            self.failure_reason = reason.strip()
            self.failed_at = now
            self.updated_at = now

        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                reason=self.failure_reason,
                failed_at=now,
            )
        )

    def refund(self, refund_reference):
        if not refund_reference or not refund_reference.strip():
            raise ValidationError({"stripe_refund_id": ["Refund reference is required"]})

        self._assert_can_transition(PaymentStatus.REFUNDED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = PaymentStatus.REFUNDED.value
            self.stripe_refund_id = refund_reference.strip()
            self.refunded_at = now
            self.updated_at = now

        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                refund_reference=self.stripe_refund_id,
                amount=self.amount.amount,
                refunded_at=now,
            )
        )


@marketplace.repository(part_of=Payment)
class PaymentRepository:
    def find_by_order(self, order_id):
        """The payment of an order, or None."""
        payments = self._dao.query.filter(order_id=str(order_id)).all().items
        return payments[0] if payments else None
