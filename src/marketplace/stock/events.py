"""Domain events for the ProductStock aggregate."""

from protean.fields import Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="ProductStock")
class StockReserved:
    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    order_id = Identifier()
    available = Integer(required=True)


@marketplace.event(part_of="ProductStock")
class StockRestored:
    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    order_id = Identifier()
    reason = String()
    available = Integer(required=True)
