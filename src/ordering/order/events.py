"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A new order was created in ``pending`` status."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    items_count = Integer(required=True)
    subtotal = Float(required=True)
    tax = Float()
    shipping_cost = Float()
    discount_amount = Float()
    total = Float(required=True)
    currency = String(default="USD")
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along the status transition table."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    note = String()
    updated_by = Identifier()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class TrackingAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    tracking_url = String()
    added_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentRecorded:
    """A payment outcome reported by the gateway was stored on the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    method = String(required=True)
    status = String(required=True)
    transaction_id = String()
    amount = Float(required=True)
    recorded_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRefunded:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    reason = String()
    refund_id = String()
    refunded_at = DateTime(required=True)
