import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.errors import register_exception_handlers
from ordering.api.routes import cart_router, checkout_router, order_router, product_router
from shared.auth import AuthGateway
from shared.throttle import InMemoryCounterStore, RateLimiter, get_limiter, set_limiter


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(order_router)
    app.include_router(product_router)
    register_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def auth():
    """Bearer headers for a user id and role."""
    gateway = AuthGateway()

    def _headers(user_id="user-1", role="customer"):
        return {"Authorization": f"Bearer {gateway.issue_token(user_id, role)}"}

    return _headers


@pytest.fixture()
def tight_limiter():
    """Allow two throttled requests per window for the duration of a test."""
    previous = get_limiter()
    limiter = RateLimiter(InMemoryCounterStore(), limit=2, window_seconds=60)
    set_limiter(limiter)
    yield limiter
    set_limiter(previous)
