"""Stripe payment gateway adapter (stripe-python SDK)."""

import stripe
import structlog

from marketplace.gateway.port import PaymentGateway, RefundResult

logger = structlog.get_logger(__name__)

# Stripe only accepts a closed set of refund reasons; ours travel in metadata.
STRIPE_REFUND_REASON = "requested_by_customer"


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str | None, webhook_secret: str | None, tolerance: int = 300) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def create_refund(
        self,
        payment_intent_id: str,
        amount: int,
        reason: str,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        params = {
            "payment_intent": payment_intent_id,
            "amount": amount,
            "reason": STRIPE_REFUND_REASON,
            "metadata": {**(metadata or {}), "reason": reason},
            "api_key": self.api_key,
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            refund = stripe.Refund.create(**params)
        except stripe.StripeError as exc:
            logger.warning(
                "stripe_refund_failed",
                payment_intent_id=payment_intent_id,
                amount=amount,
                code=getattr(exc, "code", None),
                error=str(exc),
            )
            return RefundResult(success=False, status="failed", failure_reason=exc.user_message or str(exc))

        if refund.status in ("failed", "canceled"):
            return RefundResult(
                success=False,
                refund_id=refund.id,
                status=refund.status,
                failure_reason=getattr(refund, "failure_reason", None) or f"Refund {refund.status}",
            )
        return RefundResult(success=True, refund_id=refund.id, status=refund.status)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        if not self.webhook_secret or not signature:
            return False

        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret, self.tolerance)
        except stripe.SignatureVerificationError:
            return False
        return True
