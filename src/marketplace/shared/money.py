"""Money value object and commission arithmetic.

Amounts are integer minor currency units (cents).
"""

from decimal import ROUND_HALF_UP, Decimal

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Integer, String

from marketplace.domain import marketplace

DEFAULT_CURRENCY = "EUR"

VALID_CURRENCIES = frozenset({"EUR", "USD", "GBP", "CHF"})


@marketplace.value_object
class Money:
    """An amount in minor units with its ISO 4217 currency."""

    amount = Integer(required=True, min_value=0)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)

    @invariant.post
    def currency_must_be_supported(self):
        if self.currency not in VALID_CURRENCIES:
            raise ValidationError({"currency": [f"Unsupported currency: {self.currency}"]})


def apply_rate(amount, rate):
    """Apply a percentage rate to an amount, rounding half up to a whole unit.

    The rate is converted through ``str`` so that ``0.05`` is exactly 5/100
    and never its binary approximation.
    """
    if amount < 0:
        raise ValidationError({"amount": ["Amount cannot be negative"]})
    if rate < 0 or rate > 1:
        raise ValidationError({"rate": ["Rate must be between 0 and 1"]})

    value = Decimal(int(amount)) * Decimal(str(rate))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

