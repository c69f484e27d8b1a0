"""Marketplace bounded context: order, payment and payout lifecycle.

Owns the Order, Payment, Return and Dispute state machines, the
reconciliation of payment-provider webhooks into the platform ledger, and
the escrow rules that decide when a creator's funds may be released.
"""

from protean.domain import Domain

from marketplace.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
marketplace = Domain(name="marketplace")
