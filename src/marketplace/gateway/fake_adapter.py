"""Configurable fake payment provider for development and testing.

Refunds succeed or fail on demand and every call is recorded in ``calls``.
A webhook is considered authentic when its signature header equals
``FakeGateway.VALID_SIGNATURE``.
"""

from uuid import uuid4

from marketplace.gateway.port import PaymentGateway, RefundResult


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    VALID_SIGNATURE = "test-signature"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Refund declined"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Refund declined") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_refund(
        self,
        payment_intent_id: str,
        amount: int,
        reason: str,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "create_refund",
                "payment_intent_id": payment_intent_id,
                "amount": amount,
                "reason": reason,
                "metadata": dict(metadata or {}),
                "idempotency_key": idempotency_key,
            }
        )

        if self.should_succeed:
            return RefundResult(
                success=True,
                refund_id=f"re_fake_{uuid4().hex[:12]}",
                status="succeeded",
            )
        return RefundResult(success=False, status="failed", failure_reason=self.failure_reason)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:  # noqa: ARG002
        return signature == self.VALID_SIGNATURE

    @property
    def refund_calls(self) -> list[dict]:
        return [call for call in self.calls if call["method"] == "create_refund"]
