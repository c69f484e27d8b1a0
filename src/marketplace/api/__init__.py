"""Marketplace API package."""

from marketplace.api.errors import register_exception_handlers
from marketplace.api.routes import dispute_router, escrow_router, order_router, return_router, webhook_router

__all__ = [
    "dispute_router",
    "escrow_router",
    "order_router",
    "register_exception_handlers",
    "return_router",
    "webhook_router",
]
