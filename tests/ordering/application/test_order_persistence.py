"""Orders survive a save and reload through the repository unchanged."""

from ordering.order.order import Order
from ordering.order.queries import get_order
from protean import current_domain


def _persisted(address, **overrides):
    values = {
        "user_id": "user-1",
        "order_number": "ORD12345678WXYZ",
        "items": [{"product_id": "prod-1", "name": "Classic Tee", "price": 25.0, "quantity": 3}],
        "shipping_address": address,
        "shipping_cost": 10.0,
    }
    values.update(overrides)
    order = Order.create(**values)
    current_domain.repository_for(Order).add(order)
    return current_domain.repository_for(Order).get(order.id)


class TestOrderRoundTrip:
    def test_order_without_discount(self, address):
        order = _persisted(address)

        assert order.discount is None
        assert order.discount_amount == 0.0
        assert order.subtotal == 75.0
        assert order.shipping_cost == 10.0
        assert order.total == 85.0

    def test_order_with_percentage_discount(self, address):
        order = _persisted(address, tax_rate=0.1, discount={"code": "TEN", "amount": 10, "type": "percentage"})

        assert order.discount.code == "TEN"
        assert order.discount.value == 10
        assert order.discount.type == "percentage"
        assert order.discount_amount == 7.5
        assert order.total == 75.0 + 7.5 + 10.0 - 7.5

    def test_order_with_fixed_discount(self, address):
        order = _persisted(address, discount={"code": "FIVE", "amount": 5.0, "type": "fixed"})

        assert order.discount_amount == 5.0
        assert order.total == 80.0

    def test_reloaded_order_can_move_on(self, address):
        order = _persisted(address)
        order.transition("confirmed")
        current_domain.repository_for(Order).add(order)

        assert get_order(order.id).status == "confirmed"
