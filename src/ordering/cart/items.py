"""Cart item management: commands and handler.

Carts are addressed by their owner: every command carries the user id and the
handler finds (or, on the first add, creates) that user's cart.
"""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart, cart_for_user
from ordering.domain import ordering
from ordering.errors import NotFound
from ordering.stock.ledger import InventoryLedger


@ordering.command(part_of="Cart")
class AddToCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    colour = String(required=True, max_length=50)
    size = String(required=True, max_length=2)


@ordering.command(part_of="Cart")
class UpdateCartItem:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)


@ordering.command(part_of="Cart")
class RemoveFromCart:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.command(part_of="Cart")
class ClearCart:
    user_id = Identifier(required=True)


@ordering.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        product = InventoryLedger().product(command.product_id)

        cart = cart_for_user(command.user_id) or Cart.create(user_id=command.user_id)
        cart.add_item(
            product,
            quantity=command.quantity,
            colour=command.colour,
            size=command.size,
        )
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        cart = _existing_cart(command.user_id)

        product = None
        if command.quantity > 0:
            item = next((i for i in cart.items if str(i.id) == str(command.item_id)), None)
            if item is None:
                raise NotFound("Cart item", command.item_id)
            product = InventoryLedger().product(item.product_id)

        cart.update_item_quantity(command.item_id, command.quantity, product=product)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = _existing_cart(command.user_id)
        cart.remove_item(command.item_id)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = cart_for_user(command.user_id)
        if cart is None:
            return None
        cart.clear()
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)


def _existing_cart(user_id):
    cart = cart_for_user(user_id)
    if cart is None:
        raise NotFound("Cart")
    return cart
