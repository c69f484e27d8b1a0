"""Runtime settings read from the environment.

Contractual durations (return window, escrow hold) are module constants in
the code that enforces them, not settings.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    payment_gateway: str = "fake"  # fake, stripe
    stripe_api_key: str | None = None
    stripe_webhook_secret: str | None = None
    stripe_webhook_tolerance: int = 300  # seconds
    sentry_dsn: str | None = None
    log_level: str | None = None  # Defaults per environment
    log_dir: str | None = None  # Rotating file log when set
    default_commission_rate: float = 0.05
    plan_prices: dict[str, str] = field(default_factory=dict)  # provider price id -> plan name

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Build settings from environment variables (cached)."""
    return Settings(
        environment=(os.getenv("PROTEAN_ENV") or os.getenv("ENVIRONMENT") or "development").lower(),
        payment_gateway=os.getenv("PAYMENT_GATEWAY", "fake").lower(),
        stripe_api_key=os.getenv("STRIPE_API_KEY") or None,
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
        stripe_webhook_tolerance=int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", "300")),
        sentry_dsn=os.getenv("SENTRY_DSN") or None,
        log_level=os.getenv("LOG_LEVEL") or None,
        log_dir=os.getenv("LOG_DIR") or None,
        default_commission_rate=float(os.getenv("DEFAULT_COMMISSION_RATE", "0.05")),
        plan_prices=_plan_prices_from_env(),
    )


def _plan_prices_from_env() -> dict[str, str]:
    """Read STRIPE_PRICE_<PLAN>=price_a,price_b into a price -> plan map."""
    prices = {}
    for plan in ("ESSENTIEL", "STUDIO", "ATELIER"):
        for price_id in os.getenv(f"STRIPE_PRICE_{plan}", "").split(","):
            if price_id.strip():
                prices[price_id.strip()] = plan
    return prices
