"""PlaceOrder: the checkout hand-off into the lifecycle engine.

The checkout collaborator collects items, address and carrier, opens the
provider payment session and then places the order here. The order, its
payment and the stock reservations are written in one unit of work.
"""

import json
from collections import Counter

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import logger, marketplace
from marketplace.order.order import Order
from marketplace.payment.payment import Payment
from marketplace.shared.money import DEFAULT_CURRENCY
from marketplace.shared.status import PaymentMethod, parse_choice
from marketplace.stock.stock import ProductStock, load_stock


@marketplace.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    creator_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{product_id, title, quantity, unit_price}]
    shipping_address = Text(required=True)  # JSON: address dict
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    payment_method = String(max_length=50, default=PaymentMethod.CARD.value)
    payment_intent_id = String(max_length=255)


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items_data = json.loads(command.items)
        method = parse_choice(PaymentMethod, command.payment_method, "payment_method")

        order = Order.create(
            customer_id=command.customer_id,
            creator_id=command.creator_id,
            items_data=items_data,
            shipping_address=json.loads(command.shipping_address),
            customer_name=command.customer_name,
            customer_email=command.customer_email,
            currency=command.currency or DEFAULT_CURRENCY,
            payment_intent_id=command.payment_intent_id,
        )

        payment = Payment.create(
            order_id=str(order.id),
            amount=order.total_amount,
            currency=order.currency,
            payment_method=method.value,
            customer_id=command.customer_id,
            creator_id=command.creator_id,
        )
        if command.payment_intent_id:
            payment.mark_as_processing(command.payment_intent_id)

        reserved = []
        quantities = Counter()
        for item in order.items:
            quantities[str(item.product_id)] += item.quantity
        for product_id, quantity in quantities.items():
            stock = load_stock(product_id)
            if stock is None:
                continue
            stock.reserve(quantity, order_id=str(order.id))
            reserved.append(stock)

        current_domain.repository_for(Order).add(order)
        current_domain.repository_for(Payment).add(payment)
        stock_repo = current_domain.repository_for(ProductStock)
        for stock in reserved:
            stock_repo.add(stock)

        logger.info(
            "order_placed",
            order_id=str(order.id),
            order_number=order.order_number,
            total_amount=order.total_amount,
            payment_id=str(payment.id),
        )
        return str(order.id)
