"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.cart.cart import cart_for_user
from ordering.cart.items import AddToCart
from ordering.errors import OrderingError
from ordering.order.queries import get_order
from ordering.stock.ledger import InventoryLedger
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then


@pytest.fixture()
def products():
    """Products registered in a scenario, by name."""
    return {}


@pytest.fixture()
def error():
    """Container for the error a When step ran into."""
    return {"exc": None}


@pytest.fixture()
def shopper():
    return "shopper-1"


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:f} with {stock:d} in stock'))
def _(make_product, products, name, price, stock):
    products[name] = make_product(name=name, price=price, total_stock=stock)


@given(parsers.cfparse('the shopper has {quantity:d} of "{name}" in the cart'))
def _(products, shopper, name, quantity):
    product = products[name]
    current_domain.process(
        AddToCart(
            user_id=shopper,
            product_id=product.id,
            quantity=quantity,
            colour=product.colour,
            size=product.size,
        ),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{name}" has {available:d} available, {total:d} in stock and {held:d} on hold'))
def _(products, name, available, total, held):
    product = InventoryLedger().product(products[name].id)
    assert product.available_stock == available
    assert product.total_stock == total
    assert product.sold_count == held


@then(parsers.cfparse("the shopper's cart holds {count:d} items"))
def _(shopper, count):
    cart = cart_for_user(shopper)
    assert cart.total_items == count


@then(parsers.cfparse('the order is "{status}"'))
def _(order, status):
    assert get_order(order.id).status == status


@then(parsers.cfparse('the request fails with "{title}"'))
def _(error, title):
    exc = error["exc"]
    assert exc is not None
    if isinstance(exc, OrderingError):
        assert exc.title == title
    else:
        assert isinstance(exc, ValidationError)
        assert title == "Validation Error"
