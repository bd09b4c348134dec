from datetime import UTC, datetime

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering
    from ordering.utils.db import drop_db, setup_db

    bed = DomainFixture(ordering)
    bed.setup()
    setup_db(ordering)
    yield bed
    drop_db(ordering)
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    from ordering.checkout.payment import reset_gateway
    from shared.throttle import get_limiter

    with ordering_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

    reset_gateway()
    get_limiter().store.reset()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_product():
    """Persist a product and return it. Keyword arguments override the defaults."""
    from ordering.stock.product import Product

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        now = datetime.now(UTC)
        values = {
            "name": f"Classic Tee {counter['n']}",
            "sku": f"TEE-{counter['n']:03d}",
            "price": 25.0,
            "colour": "black",
            "size": "md",
            "image": "https://cdn.example.com/tee.png",
            "total_stock": 10,
            "sold_count": 0,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        product = Product(**values)
        current_domain.repository_for(Product).add(product)
        return current_domain.repository_for(Product).get(product.id)

    return _make


@pytest.fixture()
def address():
    return {
        "full_name": "Jane Doe",
        "street": "123 Main St",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
        "country": "USA",
        "phone": "+1-555-0100",
    }


@pytest.fixture()
def reload():
    """Fetch a fresh copy of an aggregate from its repository."""

    def _reload(aggregate):
        return current_domain.repository_for(type(aggregate)).get(aggregate.id)

    return _reload


@pytest.fixture()
def place_order(address):
    """Place an order for ``(product, quantity)`` pairs through checkout and return it."""
    from ordering.checkout.orchestrator import CheckoutService

    def _place(user_id, *lines, **kwargs):
        return CheckoutService().place_order(
            user_id,
            items=[{"product_id": product.id, "quantity": quantity} for product, quantity in lines],
            shipping_address=address,
            **kwargs,
        )

    return _place
