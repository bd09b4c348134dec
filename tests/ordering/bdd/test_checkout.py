"""BDD tests for checkout."""

from ordering.checkout.orchestrator import CheckoutService
from ordering.stock.ledger import InventoryLedger
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/checkout.feature")


# ---------------------------------------------------------------------------
# Given/When steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('another shopper buys {quantity:d} of "{name}"'))
def _(products, name, quantity):
    InventoryLedger().reserve(products[name].id, quantity)


@when("the shopper checks out", target_fixture="order")
def _(shopper, address, error):
    try:
        return CheckoutService().checkout(shopper, shipping_address=address)
    except ValidationError as exc:
        error["exc"] = exc
        return None


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("an order totalling {total:f} is placed"))
def _(order, total):
    assert order is not None
    assert order.status == "pending"
    assert order.inventory_status == "reserved"
    assert order.total == total
