"""Dispute aggregate: the customer's case file for a disputed order.

State Machine:
    OPEN → UNDER_REVIEW → RESOLVED
    OPEN → UNDER_REVIEW → CLOSED
    OPEN → RESOLVED | CLOSED

RESOLVED and CLOSED are terminal. The order itself stays DISPUTE_OPENED;
the dispute carries the outcome.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text

from marketplace.disputes.events import DisputeClosed, DisputeFiled, DisputeResolved, DisputeReviewStarted
from marketplace.domain import marketplace
from marketplace.shared.errors import AlreadyFinal, InvalidTransition
from marketplace.shared.status import TERMINAL_DISPUTE_STATUSES, DisputeStatus, DisputeType, parse_choice

MIN_DESCRIPTION_LENGTH = 10

_VALID_TRANSITIONS = {
    DisputeStatus.OPEN: {DisputeStatus.UNDER_REVIEW, DisputeStatus.RESOLVED, DisputeStatus.CLOSED},
    DisputeStatus.UNDER_REVIEW: {DisputeStatus.RESOLVED, DisputeStatus.CLOSED},
    DisputeStatus.RESOLVED: set(),  # Terminal
    DisputeStatus.CLOSED: set(),  # Terminal
}


@marketplace.aggregate
class Dispute:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    creator_id = Identifier(required=True)

    dispute_type = String(choices=DisputeType, default=DisputeType.OTHER.value)
    description = Text()
    status = String(choices=DisputeStatus, default=DisputeStatus.OPEN.value)
    resolution = String(max_length=1000)

    opened_at = DateTime()
    review_started_at = DateTime()
    resolved_at = DateTime()
    closed_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def outcome_only_when_finished(self):
        if self.resolution and DisputeStatus(self.status) not in TERMINAL_DISPUTE_STATUSES:
            raise ValidationError({"resolution": ["Only a finished dispute carries an outcome"]})

    @classmethod
    def file(cls, order, dispute_type=None, description=None, now=None):
        """Open the case file for an order that was just disputed."""
        dispute_type = parse_choice(DisputeType, dispute_type or DisputeType.OTHER.value, "dispute_type")
        description = (description or "").strip() or None
        if description is not None and len(description) < MIN_DESCRIPTION_LENGTH:
            raise ValidationError(
                {"description": [f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters"]}
            )

        now = now or datetime.now(UTC)
        dispute = cls(
            order_id=str(order.id),
            customer_id=str(order.customer_id),
            creator_id=str(order.creator_id),
            dispute_type=dispute_type.value,
            description=description,
            status=DisputeStatus.OPEN.value,
            opened_at=now,
            updated_at=now,
        )
        dispute.raise_(
            DisputeFiled(
                dispute_id=str(dispute.id),
                order_id=str(order.id),
                customer_id=str(order.customer_id),
                dispute_type=dispute_type.value,
                filed_at=now,
            )
        )
        return dispute

    @property
    def is_active(self):
        return DisputeStatus(self.status) not in TERMINAL_DISPUTE_STATUSES

    def _assert_can_transition(self, target_status, message):
        current = DisputeStatus(self.status)
        if current in TERMINAL_DISPUTE_STATUSES:
            raise AlreadyFinal(f"Dispute is already {current.value.lower()}")
        if target_status not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(message)

    def start_review(self):
        self._assert_can_transition(DisputeStatus.UNDER_REVIEW, "Only open disputes can be taken under review")

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = DisputeStatus.UNDER_REVIEW.value
            self.review_started_at = now
            self.updated_at = now

        self.raise_(DisputeReviewStarted(dispute_id=str(self.id), order_id=str(self.order_id), started_at=now))

    def resolve(self, resolution):
        self._assert_can_transition(DisputeStatus.RESOLVED, "Dispute cannot be resolved")
        if not resolution or not resolution.strip():
            raise ValidationError({"resolution": ["A resolution is required"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = DisputeStatus.RESOLVED.value
            self.resolution = resolution.strip()
            self.resolved_at = now
            self.updated_at = now

        self.raise_(
            DisputeResolved(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                resolution=self.resolution,
                resolved_at=now,
            )
        )

    def close(self, reason):
        self._assert_can_transition(DisputeStatus.CLOSED, "Dispute cannot be closed")
        if not reason or not reason.strip():
            raise ValidationError({"resolution": ["A reason is required to close a dispute"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = DisputeStatus.CLOSED.value
            self.resolution = reason.strip()
            self.closed_at = now
            self.updated_at = now

        self.raise_(
            DisputeClosed(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                reason=self.resolution,
                closed_at=now,
            )
        )


@marketplace.repository(part_of=Dispute)
class DisputeRepository:
    def for_order(self, order_id):
        return self._dao.query.filter(order_id=str(order_id)).all().items
