"""Domain events for the Product stock ledger.

Every stock movement is recorded as an immutable fact carrying the counters
after the change, so the event log doubles as a stock movement history.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Product")
class ProductRegistered:
    """A product was added to the ledger with its opening stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    sku = String(required=True)
    price = Float(required=True)
    colour = String(required=True)
    size = String(required=True)
    total_stock = Integer(required=True)
    registered_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockReserved:
    """Units were put on hold for an order (sold count increased)."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    sold_count = Integer(required=True)
    available_stock = Integer(required=True)
    reserved_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockReleased:
    """A hold was lifted (sold count decreased)."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    sold_count = Integer(required=True)
    available_stock = Integer(required=True)
    released_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockCommitted:
    """Units left the warehouse for good (total stock decreased)."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    total_stock = Integer(required=True)
    available_stock = Integer(required=True)
    committed_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockRestored:
    """Previously committed units came back into stock (total stock increased)."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    total_stock = Integer(required=True)
    available_stock = Integer(required=True)
    restored_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockAdjusted:
    """An administrator set the total stock after a count or delivery."""

    __version__ = 1

    product_id = Identifier(required=True)
    previous_total_stock = Integer(required=True)
    total_stock = Integer(required=True)
    reason = String()
    adjusted_by = Identifier()
    adjusted_at = DateTime(required=True)


@ordering.event(part_of="Product")
class ProductDeactivated:
    """The product was soft-deleted; historical orders keep their snapshots."""

    __version__ = 1

    product_id = Identifier(required=True)
    deactivated_at = DateTime(required=True)
