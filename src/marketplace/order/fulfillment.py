"""Shipment, delivery and dispute: commands and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.disputes.dispute import Dispute
from marketplace.domain import logger, marketplace
from marketplace.order.order import Order
from marketplace.returns.return_request import ReturnRequest
from marketplace.shared.errors import InvalidTransition


@marketplace.command(part_of="Order")
class RecordShipment:
    order_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=255)
    creator_id = Identifier()  # When given, must own the order


@marketplace.command(part_of="Order")
class RecordDelivery:
    order_id = Identifier(required=True)
    delivered_at = DateTime()  # Carrier-confirmed time; defaults to now


@marketplace.command(part_of="Order")
class OpenDispute:
    order_id = Identifier(required=True)
    customer_id = Identifier()  # When given, must own the order
    dispute_type = String(max_length=50)
    description = Text()


@marketplace.command_handler(part_of=Order)
class OrderFulfillmentHandler:
    @handle(RecordShipment)
    def record_shipment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if command.creator_id and str(order.creator_id) != str(command.creator_id):
            raise ValidationError({"creator_id": ["Order does not belong to this creator"]})
        order.record_shipment(carrier=command.carrier, tracking_number=command.tracking_number)
        repo.add(order)

    @handle(RecordDelivery)
    def record_delivery(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_delivery(delivered_at=command.delivered_at)
        repo.add(order)

    @handle(OpenDispute)
    def open_dispute(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if command.customer_id and str(order.customer_id) != str(command.customer_id):
            raise ValidationError({"customer_id": ["Order does not belong to this customer"]})

        # An open return must finish (refunded or rejected) before a dispute
        active_return = current_domain.repository_for(ReturnRequest).active_for_order(order.id)
        if active_return is not None:
            raise InvalidTransition(
                f"A return is in progress for this order ({active_return.status})",
                field="return",
            )

        order.open_dispute()
        dispute = Dispute.file(order, dispute_type=command.dispute_type, description=command.description)
        repo.add(order)
        current_domain.repository_for(Dispute).add(dispute)

        logger.info("dispute_opened", order_id=str(order.id), dispute_id=str(dispute.id))
        return str(dispute.id)
