"""Cart aggregate (CQRS): one per user, the source of every checkout.

Lines are keyed by product + colour + size: adding the same variant again
merges into the existing line. ``total_items`` and ``total_amount`` are
recomputed at the end of every mutation, so a persisted cart never carries
stale totals. Prices are snapshotted when a line is first added.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.events import CartCleared, CartItemAdded, CartItemRemoved, CartItemUpdated
from ordering.domain import ordering
from ordering.errors import InsufficientStock, NotFound


@ordering.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    name = String(max_length=200)
    colour = String(required=True, max_length=50)
    size = String(required=True, max_length=2)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)
    added_at = DateTime()

    @property
    def line_total(self):
        return round(self.price * self.quantity, 2)


@ordering.aggregate
class Cart:
    user_id = Identifier(required=True, unique=True)
    items = HasMany(CartItem)
    total_items = Integer(default=0)
    total_amount = Float(default=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def totals_must_not_be_negative(self):
        if (self.total_items or 0) < 0 or (self.total_amount or 0.0) < 0:
            raise ValidationError({"cart": ["Cart totals cannot be negative"]})

    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, total_items=0, total_amount=0.0, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product, quantity, colour, size):
        """Add ``quantity`` units of a product variant, merging with an existing line.

        The merged quantity is checked against the product's available stock;
        nothing is reserved until checkout.
        """
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if not product.is_active:
            raise NotFound("Product", product.id)
        product.ensure_variant(colour, size)

        existing = self._find_line(product.id, colour, size)
        requested = quantity + (existing.quantity if existing else 0)
        if requested > product.available_stock:
            raise InsufficientStock(product.id, requested, product.available_stock)

        now = datetime.now(UTC)
        if existing:
            existing.quantity = requested
            item_id = str(existing.id)
        else:
            item = CartItem(
                product_id=str(product.id),
                name=product.name,
                colour=colour,
                size=size,
                quantity=quantity,
                price=product.price,
                added_at=now,
            )
            self.add_items(item)
            item_id = str(item.id)

        self._recalculate(now)

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                item_id=item_id,
                product_id=str(product.id),
                colour=colour,
                size=size,
                quantity=quantity,
            )
        )
        return item_id

    def update_item_quantity(self, item_id, quantity, product=None):
        """Set a line's quantity. Zero removes the line; anything else is re-checked against stock."""
        if quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})
        if quantity == 0:
            self.remove_item(item_id)
            return

        item = self._get_line(item_id)
        if product is not None:
            if not product.is_active:
                raise NotFound("Product", product.id)
            if quantity > product.available_stock:
                raise InsufficientStock(product.id, quantity, product.available_stock)

        previous_quantity = item.quantity
        item.quantity = quantity
        self._recalculate(datetime.now(UTC))

        self.raise_(
            CartItemUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_item(self, item_id):
        item = self._get_line(item_id)
        self.remove_items(item)
        self._recalculate(datetime.now(UTC))

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def clear(self):
        """Drop every line. The cart itself is kept for the next visit."""
        removed = len(self.items)
        for item in list(self.items):
            self.remove_items(item)
        self._recalculate(datetime.now(UTC))

        self.raise_(CartCleared(cart_id=str(self.id), user_id=str(self.user_id), items_removed=removed))

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _find_line(self, product_id, colour, size):
        return next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and i.colour == colour and i.size == size
            ),
            None,
        )

    def _get_line(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise NotFound("Cart item", item_id)
        return item

    def _recalculate(self, now):
        self.total_items = sum(i.quantity for i in self.items)
        self.total_amount = round(sum(i.price * i.quantity for i in self.items), 2)
        self.updated_at = now


def cart_for_user(user_id):
    """Return the user's cart, or ``None`` when they never added anything."""
    repo = current_domain.repository_for(Cart)
    record = repo._dao.query.filter(user_id=str(user_id)).all().first
    return repo.get(record.id) if record else None
