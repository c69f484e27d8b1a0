"""Payment provider port (abstract interface).

The marketplace only asks two things of its provider: issue a refund
against a captured payment intent, and authenticate webhook deliveries.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    refund_id: str | None = None
    status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment provider interface."""

    @abstractmethod
    def create_refund(
        self,
        payment_intent_id: str,
        amount: int,
        reason: str,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        """Refund ``amount`` minor units of a captured payment intent."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify that a raw webhook body was signed by the provider."""
        ...
