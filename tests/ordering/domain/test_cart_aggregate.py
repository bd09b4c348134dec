"""Tests for the Cart aggregate: merging lines, stock checks and totals."""

import pytest
from ordering.cart.cart import Cart
from ordering.cart.events import CartCleared, CartItemAdded, CartItemRemoved, CartItemUpdated
from ordering.errors import InsufficientStock, NotFound, VariantUnavailable
from ordering.stock.product import Product
from protean.exceptions import ValidationError


def _product(price=20.0, total_stock=10, colour="black", size="md", sku="TEE-1"):
    return Product.register(
        name="Classic Tee",
        sku=sku,
        price=price,
        colour=colour,
        size=size,
        total_stock=total_stock,
    )


class TestAddItem:
    def test_new_cart_is_empty(self):
        cart = Cart.create("user-1")
        assert cart.total_items == 0
        assert cart.total_amount == 0.0
        assert len(cart.items) == 0

    def test_add_item_snapshots_name_and_price(self):
        cart = Cart.create("user-1")
        product = _product(price=19.99)
        cart.add_item(product, 2, "black", "md")

        assert len(cart.items) == 1
        line = cart.items[0]
        assert line.name == "Classic Tee"
        assert line.price == 19.99
        assert line.quantity == 2
        assert cart.total_items == 2
        assert cart.total_amount == 39.98

    def test_same_variant_merges_into_one_line(self):
        cart = Cart.create("user-1")
        product = _product()
        first_id = cart.add_item(product, 1, "black", "md")
        second_id = cart.add_item(product, 2, "black", "md")

        assert first_id == second_id
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3
        assert cart.total_items == 3

    def test_different_products_get_separate_lines(self):
        cart = Cart.create("user-1")
        cart.add_item(_product(price=10.0, sku="A"), 1, "black", "md")
        cart.add_item(_product(price=5.0, sku="B", colour="white"), 2, "white", "md")

        assert len(cart.items) == 2
        assert cart.total_items == 3
        assert cart.total_amount == 20.0

    def test_merged_quantity_is_checked_against_stock(self):
        cart = Cart.create("user-1")
        product = _product(total_stock=3)
        cart.add_item(product, 2, "black", "md")

        with pytest.raises(InsufficientStock) as exc:
            cart.add_item(product, 2, "black", "md")

        assert exc.value.requested == 4
        assert exc.value.available == 3
        assert cart.items[0].quantity == 2

    def test_reserved_units_are_not_available_to_carts(self):
        cart = Cart.create("user-1")
        product = _product(total_stock=3)
        product.reserve(3)

        with pytest.raises(InsufficientStock):
            cart.add_item(product, 1, "black", "md")

    def test_inactive_product_is_not_found(self):
        cart = Cart.create("user-1")
        product = _product()
        product.deactivate()

        with pytest.raises(NotFound):
            cart.add_item(product, 1, "black", "md")

    def test_wrong_variant_is_rejected(self):
        cart = Cart.create("user-1")
        with pytest.raises(VariantUnavailable):
            cart.add_item(_product(), 1, "red", "md")

    def test_zero_quantity_is_rejected(self):
        cart = Cart.create("user-1")
        with pytest.raises(ValidationError):
            cart.add_item(_product(), 0, "black", "md")

    def test_add_item_raises_event(self):
        cart = Cart.create("user-1")
        product = _product()
        cart.add_item(product, 2, "black", "md")

        added = [e for e in cart._events if isinstance(e, CartItemAdded)]
        assert len(added) == 1
        assert added[0].product_id == str(product.id)
        assert added[0].quantity == 2


class TestUpdateItem:
    def test_update_quantity_recomputes_totals(self):
        cart = Cart.create("user-1")
        product = _product(price=10.0)
        item_id = cart.add_item(product, 1, "black", "md")
        cart._events.clear()

        cart.update_item_quantity(item_id, 4, product)

        assert cart.items[0].quantity == 4
        assert cart.total_items == 4
        assert cart.total_amount == 40.0
        updated = [e for e in cart._events if isinstance(e, CartItemUpdated)]
        assert updated[0].previous_quantity == 1
        assert updated[0].new_quantity == 4

    def test_zero_quantity_removes_the_line(self):
        cart = Cart.create("user-1")
        item_id = cart.add_item(_product(), 2, "black", "md")

        cart.update_item_quantity(item_id, 0)

        assert len(cart.items) == 0
        assert cart.total_items == 0
        assert cart.total_amount == 0.0

    def test_negative_quantity_is_rejected(self):
        cart = Cart.create("user-1")
        item_id = cart.add_item(_product(), 2, "black", "md")

        with pytest.raises(ValidationError):
            cart.update_item_quantity(item_id, -1)

    def test_update_beyond_stock_is_rejected(self):
        cart = Cart.create("user-1")
        product = _product(total_stock=3)
        item_id = cart.add_item(product, 1, "black", "md")

        with pytest.raises(InsufficientStock):
            cart.update_item_quantity(item_id, 5, product)
        assert cart.items[0].quantity == 1

    def test_unknown_line_is_not_found(self):
        cart = Cart.create("user-1")
        with pytest.raises(NotFound):
            cart.update_item_quantity("missing", 2)


class TestRemoveAndClear:
    def test_remove_item(self):
        cart = Cart.create("user-1")
        keep = _product(price=10.0, sku="A")
        drop = _product(price=5.0, sku="B", colour="white")
        cart.add_item(keep, 1, "black", "md")
        drop_id = cart.add_item(drop, 3, "white", "md")
        cart._events.clear()

        cart.remove_item(drop_id)

        assert len(cart.items) == 1
        assert cart.total_items == 1
        assert cart.total_amount == 10.0
        assert isinstance(cart._events[0], CartItemRemoved)

    def test_remove_unknown_line(self):
        cart = Cart.create("user-1")
        with pytest.raises(NotFound):
            cart.remove_item("missing")

    def test_clear(self):
        cart = Cart.create("user-1")
        cart.add_item(_product(sku="A"), 1, "black", "md")
        cart.add_item(_product(sku="B", size="lg"), 1, "black", "lg")
        cart._events.clear()

        cart.clear()

        assert len(cart.items) == 0
        assert cart.total_items == 0
        assert cart.total_amount == 0.0
        cleared = cart._events[0]
        assert isinstance(cleared, CartCleared)
        assert cleared.items_removed == 2
