"""RequestReturn: a customer asks to return a delivered order.

At most one active return exists per order; the check runs here because it
spans ReturnRequest instances.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import logger, marketplace
from marketplace.order.order import Order
from marketplace.returns.return_request import ReturnRequest


@marketplace.command(part_of="ReturnRequest")
class RequestReturn:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    reason = String(required=True, max_length=50)
    reason_details = Text()
    items = Text()  # JSON: [{product_id, quantity}]; omitted for a full return


@marketplace.command_handler(part_of=ReturnRequest)
class RequestReturnHandler:
    @handle(RequestReturn)
    def request_return(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if str(order.customer_id) != str(command.customer_id):
            raise ValidationError({"customer_id": ["Order does not belong to this customer"]})

        repo = current_domain.repository_for(ReturnRequest)
        if repo.active_for_order(order.id) is not None:
            raise ValidationError({"order_id": ["A return is already in progress for this order"]})

        request = ReturnRequest.open(
            order=order,
            reason=command.reason,
            reason_details=command.reason_details,
            items=json.loads(command.items) if command.items else None,
        )
        repo.add(request)

        logger.info(
            "return_requested",
            return_id=str(request.id),
            order_id=str(order.id),
            refund_amount=request.refund_amount,
            partial=request.is_partial,
        )
        return str(request.id)
