"""``payment_intent.succeeded`` and ``payment_intent.payment_failed``.

A successful capture appends the commission entry, records the payment as
succeeded and marks the order paid, all in one unit of work. Redeliveries
of the same event find every step already done and change nothing.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.billing.subscription import commission_rate_for_creator
from marketplace.domain import logger, marketplace
from marketplace.ledger.writer import record_commission
from marketplace.order.order import Order
from marketplace.payment.payment import Payment
from marketplace.shared.errors import AlreadyFinal, IntegrityConflict
from marketplace.shared.status import OrderStatus, PaymentStatus


@marketplace.command(part_of="Order")
class ConfirmPaymentIntent:
    stripe_event_id = String(required=True, max_length=255)
    payment_intent_id = String(required=True, max_length=255)
    order_id = Identifier()
    amount_received = Integer(min_value=0)
    currency = String(max_length=3)
    succeeded_at = DateTime()


@marketplace.command(part_of="Payment")
class RecordPaymentIntentFailure:
    stripe_event_id = String(required=True, max_length=255)
    payment_intent_id = String(required=True, max_length=255)
    order_id = Identifier()
    failure_message = String(max_length=500)


def _order_reference(intent):
    return (intent.get("metadata") or {}).get("order_id")


def succeeded_command_from(envelope):
    intent = envelope.payload
    currency = intent.get("currency")
    return ConfirmPaymentIntent(
        stripe_event_id=envelope.event_id,
        payment_intent_id=intent.get("id"),
        order_id=_order_reference(intent),
        amount_received=intent.get("amount_received"),
        currency=currency.upper() if currency else None,
        succeeded_at=envelope.occurred_at,
    )


def failed_command_from(envelope):
    intent = envelope.payload
    error = intent.get("last_payment_error") or {}
    return RecordPaymentIntentFailure(
        stripe_event_id=envelope.event_id,
        payment_intent_id=intent.get("id"),
        order_id=_order_reference(intent),
        failure_message=(error.get("message") or error.get("code") or "Payment failed")[:500],
    )


def resolve_order(payment_intent_id, order_id=None):
    """The order bound to an intent, falling back to the intent's metadata."""
    repo = current_domain.repository_for(Order)
    order = repo.find_by_payment_intent(payment_intent_id)
    if order is not None or not order_id:
        return order
    try:
        return repo.get(order_id)
    except ObjectNotFoundError:
        return None


@marketplace.command_handler(part_of=Order)
class PaymentIntentSucceededHandler:
    @handle(ConfirmPaymentIntent)
    def confirm_payment(self, command):
        order = resolve_order(command.payment_intent_id, command.order_id)
        if order is None:
            logger.warning(
                "order_not_found_for_payment_intent",
                payment_intent_id=command.payment_intent_id,
                order_id=command.order_id,
            )
            return False

        if command.amount_received is not None and command.amount_received != order.total_amount:
            logger.warning(
                "payment_amount_mismatch",
                order_id=str(order.id),
                expected=order.total_amount,
                received=command.amount_received,
            )

        payment_repo = current_domain.repository_for(Payment)
        payment = payment_repo.find_by_order(order.id)
        if payment is not None and PaymentStatus(payment.status) == PaymentStatus.FAILED:
            logger.error(
                "payment_succeeded_after_failure",
                payment_id=str(payment.id),
                order_id=str(order.id),
                payment_intent_id=command.payment_intent_id,
            )
            raise IntegrityConflict(
                f"Payment {payment.id} already failed; cannot confirm {command.payment_intent_id}",
                field="stripe_payment_intent_id",
            )

        rate = commission_rate_for_creator(order.creator_id)
        recorded = record_commission(command.stripe_event_id, order, rate, occurred_at=command.succeeded_at)

        if payment is None:
            logger.warning("payment_not_found_for_order", order_id=str(order.id))
        else:
            try:
                if payment.mark_as_succeeded(command.payment_intent_id):
                    payment_repo.add(payment)
            except AlreadyFinal:
                logger.info(
                    "payment_already_final",
                    payment_id=str(payment.id),
                    status=payment.status,
                )

        if OrderStatus(order.status) == OrderStatus.PENDING:
            order.mark_paid(command.payment_intent_id)
            current_domain.repository_for(Order).add(order)
            logger.info("order_paid", order_id=str(order.id), payment_intent_id=command.payment_intent_id)
        else:
            logger.info("order_already_past_pending", order_id=str(order.id), status=order.status)

        return recorded


@marketplace.command_handler(part_of=Payment)
class PaymentIntentFailedHandler:
    @handle(RecordPaymentIntentFailure)
    def record_failure(self, command):
        order = resolve_order(command.payment_intent_id, command.order_id)
        if order is None:
            logger.warning(
                "order_not_found_for_payment_intent",
                payment_intent_id=command.payment_intent_id,
                order_id=command.order_id,
            )
            return False

        payment_repo = current_domain.repository_for(Payment)
        payment = payment_repo.find_by_order(order.id)
        if payment is None:
            logger.warning("payment_not_found_for_order", order_id=str(order.id))
            return False

        try:
            payment.mark_as_failed(command.failure_message or "Payment failed")
        except AlreadyFinal:
            logger.info("payment_already_final", payment_id=str(payment.id), status=payment.status)
            return False

        payment_repo.add(payment)
        logger.info(
            "payment_failed",
            payment_id=str(payment.id),
            order_id=str(order.id),
            reason=payment.failure_reason,
        )
        return True
