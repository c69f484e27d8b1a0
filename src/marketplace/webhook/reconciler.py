"""Webhook reconciler: the single entry point for provider events.

Order of work for every delivery:

1. Verify the signature over the raw body. Nothing is parsed before that.
2. Parse the envelope and recognise its type.
3. Translate the provider object into a command and process it
   synchronously in its own unit of work.

Handler failures are logged, reported to error tracking and still
acknowledged: the provider would otherwise redeliver an event that can
never succeed. Deduplication lives in the ledger, keyed by event id.
"""

from dataclasses import dataclass
from enum import Enum

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace import monitoring
from marketplace.domain import logger
from marketplace.gateway import get_gateway
from marketplace.shared.errors import IntegrityConflict, TransitionError, first_message
from marketplace.utils.logging import add_context, clear_context
from marketplace.webhook import accounts, invoices, payment_intents, subscriptions
from marketplace.webhook.envelope import MalformedEnvelope, StripeEventType, parse_envelope


class WebhookOutcome(Enum):
    PROCESSED = "processed"
    FAILED = "failed"
    REJECTED_SIGNATURE = "rejected_signature"
    MALFORMED = "malformed"
    UNSUPPORTED = "unsupported"


_HTTP_STATUS = {
    WebhookOutcome.PROCESSED: 200,
    WebhookOutcome.FAILED: 200,
    WebhookOutcome.REJECTED_SIGNATURE: 401,
    WebhookOutcome.MALFORMED: 400,
    WebhookOutcome.UNSUPPORTED: 400,
}


@dataclass(frozen=True)
class WebhookReceipt:
    outcome: WebhookOutcome
    event_id: str | None = None
    event_type: str | None = None
    detail: str | None = None

    @property
    def acknowledged(self) -> bool:
        return _HTTP_STATUS[self.outcome] == 200

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.outcome]


def build_command(envelope):
    """Translate a recognised envelope into the command that handles it."""
    match envelope.kind:
        case StripeEventType.ACCOUNT_UPDATED:
            return accounts.command_from(envelope)
        case StripeEventType.INVOICE_PAID:
            return invoices.command_from(envelope)
        case StripeEventType.PAYMENT_INTENT_SUCCEEDED:
            return payment_intents.succeeded_command_from(envelope)
        case StripeEventType.PAYMENT_INTENT_FAILED:
            return payment_intents.failed_command_from(envelope)
        case StripeEventType.SUBSCRIPTION_UPDATED:
            return subscriptions.updated_command_from(envelope)
        case StripeEventType.SUBSCRIPTION_DELETED:
            return subscriptions.deleted_command_from(envelope)
        case _:
            raise ValueError(f"No handler for event type {envelope.event_type}")


class WebhookReconciler:
    def __init__(self, gateway=None):
        self._gateway = gateway

    @property
    def gateway(self):
        return self._gateway or get_gateway()

    def handle(self, payload: bytes, signature: str | None) -> WebhookReceipt:
        if not self.gateway.verify_webhook_signature(payload, signature or ""):
            logger.warning("webhook_signature_rejected", has_signature=bool(signature))
            return WebhookReceipt(WebhookOutcome.REJECTED_SIGNATURE, detail="Invalid signature")

        try:
            envelope = parse_envelope(payload)
        except MalformedEnvelope as exc:
            logger.warning("webhook_malformed", error=exc.message)
            return WebhookReceipt(WebhookOutcome.MALFORMED, detail=exc.message)

        if envelope.kind is None:
            logger.info("webhook_unsupported", event_id=envelope.event_id, event_type=envelope.event_type)
            return WebhookReceipt(
                WebhookOutcome.UNSUPPORTED,
                event_id=envelope.event_id,
                event_type=envelope.event_type,
                detail=f"Unsupported event type {envelope.event_type}",
            )

        add_context(event_id=envelope.event_id, event_type=envelope.event_type)
        try:
            return self._dispatch(envelope)
        finally:
            clear_context()

    def _dispatch(self, envelope):
        try:
            command = build_command(envelope)
            result = current_domain.process(command, asynchronous=False)
        except Exception as exc:
            self._report(envelope, exc)
            return WebhookReceipt(
                WebhookOutcome.FAILED,
                event_id=envelope.event_id,
                event_type=envelope.event_type,
                detail=first_message(exc),
            )

        logger.info("webhook_processed", result=result)
        return WebhookReceipt(WebhookOutcome.PROCESSED, event_id=envelope.event_id, event_type=envelope.event_type)

    def _report(self, envelope, exc):
        if isinstance(exc, IntegrityConflict):
            logger.error("webhook_integrity_conflict", error=first_message(exc))
        elif isinstance(exc, (TransitionError, ObjectNotFoundError)):
            logger.warning("webhook_handler_rejected", error=first_message(exc), error_type=type(exc).__name__)
        else:
            logger.exception("webhook_handler_failed", error=str(exc))
        monitoring.capture_exception(exc, {"event_id": envelope.event_id, "event_type": envelope.event_type})
