"""Product aggregate (CQRS): the subject of the stock ledger.

A product is sold in exactly one variant (colour + size). Stock is tracked
with two counters:

    total_stock:  units physically held
    sold_count:   units on hold for orders that have not shipped yet
    available:    total_stock - sold_count (derived, never stored)

Orders move the counters through four primitives: reserve/release act on
``sold_count``, commit/restore act on ``total_stock``.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from ordering.domain import ordering
from ordering.errors import InsufficientStock, VariantUnavailable
from ordering.stock.events import (
    ProductDeactivated,
    ProductRegistered,
    StockAdjusted,
    StockCommitted,
    StockReleased,
    StockReserved,
    StockRestored,
)


class Size(Enum):
    SMALL = "sm"
    MEDIUM = "md"
    LARGE = "lg"
    EXTRA_LARGE = "xl"


@ordering.aggregate
class Product:
    name = String(required=True, max_length=200)
    sku = String(required=True, max_length=50)
    price = Float(required=True, min_value=0.0)
    colour = String(required=True, max_length=50)
    size = String(required=True, choices=Size)
    image = String(max_length=500, default="")
    category = String(max_length=100)
    total_stock = Integer(default=0, min_value=0)
    sold_count = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)
    is_featured = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def sold_count_must_not_exceed_total_stock(self):
        if (self.sold_count or 0) > (self.total_stock or 0):
            raise ValidationError({"sold_count": ["Sold count cannot exceed total stock"]})

    # -------------------------------------------------------------------
    # Derived stock figures
    # -------------------------------------------------------------------
    @property
    def available_stock(self):
        return (self.total_stock or 0) - (self.sold_count or 0)

    @property
    def in_stock(self):
        return self.available_stock > 0

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def register(cls, name, sku, price, colour, size, total_stock=0, image="", category=None, is_featured=False):
        now = datetime.now(UTC)
        product = cls(
            name=name,
            sku=sku,
            price=price,
            colour=colour,
            size=size,
            image=image or "",
            category=category,
            total_stock=total_stock,
            sold_count=0,
            is_active=True,
            is_featured=is_featured,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                name=name,
                sku=sku,
                price=price,
                colour=colour,
                size=size,
                total_stock=total_stock,
                registered_at=now,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Queries used by carts and checkout
    # -------------------------------------------------------------------
    def ensure_variant(self, colour, size):
        """Raise ``VariantUnavailable`` unless this product is the requested variant."""
        if self.colour != colour or self.size != size:
            raise VariantUnavailable(self.id, colour, size)

    def ensure_available(self, quantity):
        """Raise ``InsufficientStock`` if ``quantity`` units cannot be sold right now."""
        if not self.is_active:
            raise InsufficientStock(self.id, quantity, 0, message=f"Product {self.name} is not available")
        if self.available_stock < quantity:
            raise InsufficientStock(self.id, quantity, self.available_stock)

    # -------------------------------------------------------------------
    # Ledger primitives
    # -------------------------------------------------------------------
    def reserve(self, quantity):
        """Hold ``quantity`` units for an order."""
        _require_positive(quantity)
        self.ensure_available(quantity)

        self.sold_count += quantity
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                quantity=quantity,
                sold_count=self.sold_count,
                available_stock=self.available_stock,
                reserved_at=now,
            )
        )

    def release(self, quantity):
        """Lift a hold previously taken with ``reserve``."""
        _require_positive(quantity)
        if quantity > self.sold_count:
            raise ValidationError(
                {"quantity": [f"Cannot release {quantity} units, only {self.sold_count} are reserved"]}
            )

        self.sold_count -= quantity
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            StockReleased(
                product_id=str(self.id),
                quantity=quantity,
                sold_count=self.sold_count,
                available_stock=self.available_stock,
                released_at=now,
            )
        )

    def commit(self, quantity):
        """Deduct ``quantity`` units from total stock permanently."""
        _require_positive(quantity)
        if self.total_stock - quantity < self.sold_count:
            raise InsufficientStock(self.id, quantity, self.available_stock)

        self.total_stock -= quantity
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            StockCommitted(
                product_id=str(self.id),
                quantity=quantity,
                total_stock=self.total_stock,
                available_stock=self.available_stock,
                committed_at=now,
            )
        )

    def restore(self, quantity):
        """Put previously committed units back into total stock."""
        _require_positive(quantity)

        self.total_stock += quantity
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            StockRestored(
                product_id=str(self.id),
                quantity=quantity,
                total_stock=self.total_stock,
                available_stock=self.available_stock,
                restored_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def adjust_stock(self, total_stock, reason=None, adjusted_by=None):
        """Set total stock after a count or delivery. Units on hold are never dropped."""
        if total_stock < self.sold_count:
            raise ValidationError(
                {"total_stock": [f"Total stock cannot be lower than the {self.sold_count} units on hold"]}
            )

        previous = self.total_stock
        self.total_stock = total_stock
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            StockAdjusted(
                product_id=str(self.id),
                previous_total_stock=previous,
                total_stock=total_stock,
                reason=reason,
                adjusted_by=adjusted_by,
                adjusted_at=now,
            )
        )

    def deactivate(self):
        if not self.is_active:
            raise ValidationError({"is_active": ["Product is already inactive"]})

        self.is_active = False
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(ProductDeactivated(product_id=str(self.id), deactivated_at=now))


def _require_positive(quantity):
    if quantity is None or quantity < 1:
        raise ValidationError({"quantity": ["Quantity must be at least 1"]})
