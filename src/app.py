"""Marketplace FastAPI application.

Web server that processes commands synchronously via HTTP. Every request
under a marketplace route runs inside the marketplace domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay and the log format.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.monitoring import init_error_tracking

marketplace.init()
init_error_tracking(get_settings())

_DOMAIN_PREFIXES = ("/orders", "/disputes", "/returns", "/webhooks", "/escrow")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Marketplace API",
    description="Creator marketplace: orders, payments, disputes, returns and escrow",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the marketplace domain context for domain routes."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with marketplace.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from marketplace.api import (  # noqa: E402
    dispute_router,
    escrow_router,
    order_router,
    register_exception_handlers,
    return_router,
    webhook_router,
)

app.include_router(order_router)
app.include_router(dispute_router)
app.include_router(return_router)
app.include_router(webhook_router)
app.include_router(escrow_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    settings = get_settings()
    return JSONResponse(
        content={
            "status": "ok",
            "domain": marketplace.name,
            "environment": settings.environment,
            "payment_gateway": settings.payment_gateway,
        }
    )
