"""Creator subscription plans and their commercial terms."""

from dataclasses import dataclass
from enum import Enum

from marketplace.config import get_settings


class Plan(Enum):
    ESSENTIEL = "Essentiel"
    STUDIO = "Studio"
    ATELIER = "Atelier"


@dataclass(frozen=True)
class PlanTerms:
    commission_rate: float
    monthly_price: int  # minor units
    yearly_price: int


PLAN_TERMS = {
    Plan.ESSENTIEL: PlanTerms(commission_rate=0.05, monthly_price=2900, yearly_price=29000),
    Plan.STUDIO: PlanTerms(commission_rate=0.04, monthly_price=7900, yearly_price=79000),
    Plan.ATELIER: PlanTerms(commission_rate=0.03, monthly_price=9500, yearly_price=95000),
}


def commission_rate_for(plan):
    return PLAN_TERMS[Plan(plan)].commission_rate


def plan_for_price(price_id):
    """The plan sold under a provider price id, or None when unknown."""
    if not price_id:
        return None
    name = get_settings().plan_prices.get(price_id)
    return Plan[name] if name else None
