"""``invoice.paid``: subscription revenue for the platform ledger."""

from protean import handle
from protean.fields import DateTime, Integer, String
from protean.utils.globals import current_domain

from marketplace.billing.subscription import Subscription
from marketplace.domain import logger, marketplace
from marketplace.ledger.writer import record_subscription_fee
from marketplace.shared.money import DEFAULT_CURRENCY


@marketplace.command(part_of="Subscription")
class RecordSubscriptionInvoice:
    stripe_event_id = String(required=True, max_length=255)
    stripe_invoice_id = String(max_length=255)
    stripe_subscription_id = String(max_length=255)
    amount_paid = Integer(min_value=0, default=0)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    paid_at = DateTime()


def _subscription_reference(invoice):
    reference = invoice.get("subscription")
    if isinstance(reference, dict):
        return reference.get("id")
    if reference:
        return reference
    # Newer API versions nest it under the invoice parent
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


def command_from(envelope):
    invoice = envelope.payload
    return RecordSubscriptionInvoice(
        stripe_event_id=envelope.event_id,
        stripe_invoice_id=invoice.get("id"),
        stripe_subscription_id=_subscription_reference(invoice),
        amount_paid=int(invoice.get("amount_paid") or 0),
        currency=(invoice.get("currency") or DEFAULT_CURRENCY).upper(),
        paid_at=envelope.occurred_at,
    )


@marketplace.command_handler(part_of=Subscription)
class SubscriptionInvoiceHandler:
    @handle(RecordSubscriptionInvoice)
    def record_invoice(self, command):
        if not command.stripe_subscription_id:
            logger.info("invoice_without_subscription", stripe_invoice_id=command.stripe_invoice_id)
            return False

        subscription = current_domain.repository_for(Subscription).find_by_stripe_subscription(
            command.stripe_subscription_id
        )
        if subscription is None:
            logger.warning(
                "subscription_not_found",
                stripe_subscription_id=command.stripe_subscription_id,
                stripe_invoice_id=command.stripe_invoice_id,
            )
            return False

        return record_subscription_fee(
            command.stripe_event_id,
            subscription,
            amount=command.amount_paid,
            currency=command.currency,
            occurred_at=command.paid_at,
        )
