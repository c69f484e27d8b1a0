"""ProductStock aggregate: sellable units of a product.

Catalogue management lives outside this core; the marketplace only needs
to reserve units at checkout and put them back when a paid order is
cancelled.
"""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.domain import logger, marketplace
from marketplace.stock.events import StockReserved, StockRestored


@marketplace.aggregate
class ProductStock:
    product_id = Identifier(identifier=True)
    creator_id = Identifier()
    available = Integer(default=0, min_value=0)
    updated_at = DateTime()

    def reserve(self, quantity, order_id=None):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if quantity > self.available:
            raise ValidationError({"quantity": [f"Only {self.available} unit(s) of {self.product_id} available"]})

        self.available -= quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockReserved(
                product_id=str(self.product_id),
                quantity=quantity,
                order_id=order_id,
                available=self.available,
            )
        )

    def restore(self, quantity, order_id=None, reason=None):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        self.available += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockRestored(
                product_id=str(self.product_id),
                quantity=quantity,
                order_id=order_id,
                reason=reason,
                available=self.available,
            )
        )


def load_stock(product_id):
    """Return the stock record for a product, or None when it is not tracked."""
    try:
        return current_domain.repository_for(ProductStock).get(str(product_id))
    except ObjectNotFoundError:
        logger.warning("stock_record_missing", product_id=str(product_id))
        return None
