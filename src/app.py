"""Ordering FastAPI application.

Serves cart, checkout, order and stock endpoints. Commands are processed
synchronously within each request, and every request runs inside the
ordering domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from domain.toml:
#   - "test"       → in-memory providers
#   - "production" → PostgreSQL
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ordering.config import setting
from ordering.domain import ordering
from ordering.utils.logging import configure_logging
from shared.throttle import InMemoryCounterStore, RateLimiter, RedisCounterStore, set_limiter

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("PROTEAN_ENV") == "production",
)

ordering.init()

# ---------------------------------------------------------------------------
# Throttling backend
# ---------------------------------------------------------------------------
# A shared Redis store when REDIS_URL is set, otherwise per-process counters.
with ordering.domain_context():
    _redis_url = os.environ.get("REDIS_URL")
    set_limiter(
        RateLimiter(
            RedisCounterStore.from_url(_redis_url) if _redis_url else InMemoryCounterStore(),
            limit=setting("throttle_limit"),
            window_seconds=setting("throttle_window_seconds"),
        )
    )

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Ordering API",
    description="E-commerce ordering backend for carts, checkout, orders and stock",
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
    """Push the ordering domain context for each request."""
    with ordering.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers and error envelopes
# ---------------------------------------------------------------------------
from ordering.api.errors import register_exception_handlers  # noqa: E402
from ordering.api.routes import (  # noqa: E402
    cart_router,
    checkout_router,
    order_router,
    product_router,
)

app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(order_router)
app.include_router(product_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "success": True,
            "data": {"status": "ok", "domain": ordering.name},
            "message": None,
        }
    )
