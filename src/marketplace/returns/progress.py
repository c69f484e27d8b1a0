"""Physical return and refund: commands and handler.

``RefundReturn`` asks the provider for the refund first, then refunds the
return, the payment and the order in one unit of work. Every precondition
is checked before the provider is called.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import logger, marketplace
from marketplace.gateway import get_gateway
from marketplace.order.order import Order
from marketplace.payment.payment import Payment
from marketplace.returns.decision import load_for_creator
from marketplace.returns.return_request import ReturnRequest
from marketplace.shared.errors import ExternalServiceError, InvalidTransition
from marketplace.shared.status import OrderStatus


@marketplace.command(part_of="ReturnRequest")
class MarkReturnShippedBack:
    return_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)


@marketplace.command(part_of="ReturnRequest")
class MarkReturnReceived:
    return_id = Identifier(required=True)
    creator_id = Identifier(required=True)


@marketplace.command(part_of="ReturnRequest")
class RefundReturn:
    return_id = Identifier(required=True)
    creator_id = Identifier(required=True)


@marketplace.command_handler(part_of=ReturnRequest)
class ReturnProgressHandler:
    @handle(MarkReturnShippedBack)
    def mark_shipped_back(self, command):
        repo = current_domain.repository_for(ReturnRequest)
        request = repo.get(command.return_id)
        if str(request.customer_id) != str(command.customer_id):
            raise ValidationError({"customer_id": ["Return does not belong to this customer"]})
        request.mark_shipped_back(tracking_number=command.tracking_number, carrier=command.carrier)
        repo.add(request)

    @handle(MarkReturnReceived)
    def mark_received(self, command):
        request = load_for_creator(command.return_id, command.creator_id)
        request.mark_received()
        current_domain.repository_for(ReturnRequest).add(request)

    @handle(RefundReturn)
    def refund(self, command):
        request = load_for_creator(command.return_id, command.creator_id)
        request.assert_refundable()

        order_repo = current_domain.repository_for(Order)
        payment_repo = current_domain.repository_for(Payment)
        order = order_repo.get(request.order_id)
        payment = payment_repo.find_by_order(order.id)

        if OrderStatus(order.status) != OrderStatus.DELIVERED:
            raise InvalidTransition(f"Order is {order.status} and can no longer be refunded")
        if not order.stripe_payment_intent_id:
            raise InvalidTransition("Order has no payment reference to refund", field="stripe_payment_intent_id")
        if payment is None or not payment.can_be_refunded:
            raise InvalidTransition("Order payment is not refundable", field="payment")

        result = get_gateway().create_refund(
            payment_intent_id=order.stripe_payment_intent_id,
            amount=request.refund_amount,
            reason=f"Return {request.reason}",
            metadata={"return_id": str(request.id), "order_id": str(order.id)},
            idempotency_key=f"return-{request.id}",
        )
        if not result.success:
            logger.error(
                "return_refund_failed",
                return_id=str(request.id),
                order_id=str(order.id),
                reason=result.failure_reason,
            )
            raise ExternalServiceError(f"Refund could not be issued: {result.failure_reason}")

        request.refund(result.refund_id)
        order.mark_refunded(result.refund_id)
        payment.refund(result.refund_id)

        current_domain.repository_for(ReturnRequest).add(request)
        order_repo.add(order)
        payment_repo.add(payment)

        logger.info(
            "return_refunded",
            return_id=str(request.id),
            order_id=str(order.id),
            amount=request.refund_amount,
            refund_id=result.refund_id,
        )
        return result.refund_id
