"""Order cancellation: command and handler.

Cancellation is a short, explicit sequence inside one unit of work:
cancel the order, issue the refund it signals, refund the payment and put
the line quantities back in stock. The provider is called before anything
is persisted, so a failed refund leaves the order untouched.
"""

from collections import Counter

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import logger, marketplace
from marketplace.gateway import get_gateway
from marketplace.order.order import Order
from marketplace.payment.payment import Payment
from marketplace.shared.errors import ExternalServiceError
from marketplace.stock.stock import ProductStock, load_stock


@marketplace.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    customer_id = Identifier()  # When given, must own the order


@marketplace.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order_repo = current_domain.repository_for(Order)
        payment_repo = current_domain.repository_for(Payment)

        order = order_repo.get(command.order_id)
        if command.customer_id and str(order.customer_id) != str(command.customer_id):
            raise ValidationError({"customer_id": ["Order does not belong to this customer"]})

        cancellation = order.cancel(command.reason)

        payment = payment_repo.find_by_order(order.id)
        if cancellation.refund_required:
            instruction = cancellation.refund
            result = get_gateway().create_refund(
                payment_intent_id=instruction.payment_intent_id,
                amount=instruction.amount,
                reason=command.reason,
                metadata={"order_id": str(order.id), "order_number": order.order_number or ""},
                idempotency_key=f"cancel-{order.id}",
            )
            if not result.success:
                logger.error(
                    "cancellation_refund_failed",
                    order_id=str(order.id),
                    payment_intent_id=instruction.payment_intent_id,
                    reason=result.failure_reason,
                )
                raise ExternalServiceError(f"Refund could not be issued: {result.failure_reason}")

            order.record_refund_reference(result.refund_id)
            if payment is not None and payment.can_be_refunded:
                payment.refund(result.refund_id)
            else:
                logger.warning(
                    "cancellation_payment_not_refundable",
                    order_id=str(order.id),
                    payment_status=payment.status if payment else None,
                )

        quantities = Counter()
        for line in cancellation.restock:
            quantities[line.product_id] += line.quantity
        restored = []
        for product_id, quantity in quantities.items():
            stock = load_stock(product_id)
            if stock is None:
                continue
            stock.restore(quantity, order_id=str(order.id), reason="order_cancelled")
            restored.append(stock)

        order_repo.add(order)
        if payment is not None:
            payment_repo.add(payment)
        stock_repo = current_domain.repository_for(ProductStock)
        for stock in restored:
            stock_repo.add(stock)

        logger.info(
            "order_cancelled",
            order_id=str(order.id),
            refund_id=order.stripe_refund_id,
            restocked_products=len(restored),
        )
        return {"order_id": str(order.id), "refund_id": order.stripe_refund_id}
