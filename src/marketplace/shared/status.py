"""Closed vocabularies shared by the Order, Payment, Return and Dispute aggregates."""

from enum import Enum

from protean.exceptions import ValidationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELED = "Canceled"
    DISPUTE_OPENED = "Dispute_Opened"
    REFUNDED = "Refunded"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class PaymentMethod(Enum):
    CARD = "Card"
    SEPA = "Sepa"
    APPLE_PAY = "Apple_Pay"
    GOOGLE_PAY = "Google_Pay"


class ReturnStatus(Enum):
    REQUESTED = "Requested"
    APPROVED = "Approved"
    SHIPPED_BACK = "Shipped_Back"
    RECEIVED = "Received"
    REFUNDED = "Refunded"
    REJECTED = "Rejected"


class ReturnReason(Enum):
    CHANGED_MIND = "Changed_Mind"
    DEFECTIVE = "Defective"
    NOT_AS_DESCRIBED = "Not_As_Described"
    OTHER = "Other"


class DisputeStatus(Enum):
    OPEN = "Open"
    UNDER_REVIEW = "Under_Review"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class DisputeType(Enum):
    NOT_RECEIVED = "Not_Received"
    DAMAGED = "Damaged"
    WRONG_ITEM = "Wrong_Item"
    NOT_AS_DESCRIBED = "Not_As_Described"
    OTHER = "Other"


TERMINAL_PAYMENT_STATUSES = frozenset({PaymentStatus.FAILED, PaymentStatus.REFUNDED})

TERMINAL_RETURN_STATUSES = frozenset({ReturnStatus.REFUNDED, ReturnStatus.REJECTED})

TERMINAL_DISPUTE_STATUSES = frozenset({DisputeStatus.RESOLVED, DisputeStatus.CLOSED})


def parse_choice(enum_cls, raw, field):
    """Resolve ``raw`` by member value or member name, case-insensitively.

    Raises ``ValidationError`` for anything outside the enumeration.
    """
    if isinstance(raw, enum_cls):
        return raw
    if raw is not None:
        text = str(raw).strip()
        for member in enum_cls:
            if text.lower() in (member.value.lower(), member.name.lower()):
                return member

    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError({field: [f"Unknown value {raw!r}; expected one of: {allowed}"]})
