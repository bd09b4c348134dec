"""Order aggregate (CQRS): the order lifecycle state machine.

State Machine:
    pending → confirmed → processing → shipped → delivered
    shipped/delivered → returned → refunded
    pending/confirmed/processing → cancelled
    cancelled and refunded are terminal.

Line items are snapshots taken at order time; later product edits never
alter a placed order. Every status change, including the initial one, is
appended to ``status_history``. Inventory side effects of a transition live
in ``ordering.order.workflow``; the aggregate only records which lines hold
reserved or committed stock.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.errors import InvalidTransition, RefundExceedsTotal
from ordering.order.events import (
    OrderPlaced,
    OrderRefunded,
    OrderStatusChanged,
    PaymentRecorded,
    TrackingAdded,
)
from ordering.order.totals import DiscountType, compute_totals, money


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    RETURNED = "returned"


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    CASH_ON_DELIVERY = "cash_on_delivery"


class PaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class DeliveryOption(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"
    PICKUP = "pickup"


class OrderSource(Enum):
    WEB = "web"
    MOBILE = "mobile"
    ADMIN = "admin"
    API = "api"


class LineInventoryStatus(Enum):
    PENDING = "pending"
    RESERVED = "reserved"
    COMMITTED = "committed"
    RELEASED = "released"
    RESTORED = "restored"


class InventoryStatus(Enum):
    PENDING = "pending"
    RESERVED = "reserved"
    COMMITTED = "committed"
    RELEASED = "released"
    RESTORED = "restored"
    FAILED = "failed"


# Source of truth for status changes; anything not listed is rejected.
TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

_OWNER_CANCELLABLE = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

_COMPLETED = {
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
    OrderStatus.RETURNED,
}

_STATUS_TIMESTAMPS = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    full_name = String(required=True, max_length=100)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(max_length=100, default="USA")
    phone = String(max_length=30)


@ordering.value_object(part_of="Order")
class Discount:
    """A discount as offered: ``value`` is a percentage or a money amount, per ``type``.

    The money it takes off an order is kept on the order as ``discount_amount``.
    """

    code = String(max_length=50)
    value = Float(default=0.0, min_value=0.0)
    type = String(choices=DiscountType, default=DiscountType.FIXED.value)


def _discount_from(offer):
    """Build a Discount from the request shape (code, amount, type)."""
    if not offer:
        return None
    return Discount(
        code=offer.get("code"),
        value=offer.get("amount") or 0.0,
        type=offer.get("type") or DiscountType.FIXED.value,
    )


@ordering.value_object(part_of="Order")
class PaymentInfo:
    """Payment outcome as last reported by the gateway.

    The amount always follows the order total.
    """

    method = String(choices=PaymentMethod, default=PaymentMethod.CREDIT_CARD.value)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    transaction_id = String(max_length=255)
    payment_date = DateTime()
    amount = Float(default=0.0)
    currency = String(max_length=3, default="USD")
    gateway = String(max_length=50)
    failure_reason = String(max_length=500)

    def replace(self, **changes):
        values = {
            "method": self.method,
            "status": self.status,
            "transaction_id": self.transaction_id,
            "payment_date": self.payment_date,
            "amount": self.amount,
            "currency": self.currency,
            "gateway": self.gateway,
            "failure_reason": self.failure_reason,
        }
        values.update(changes)
        return PaymentInfo(**values)


@ordering.value_object(part_of="Order")
class Tracking:
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=255)
    tracking_url = String(max_length=500)
    estimated_delivery = DateTime()
    actual_delivery = DateTime()


@ordering.value_object(part_of="Order")
class Refund:
    amount = Float(required=True, min_value=0.0)
    reason = String(max_length=500)
    processed_at = DateTime(required=True)
    refund_id = String(max_length=255)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line snapshot: product details and unit price as they were at order time.

    ``inventory_status`` records what the line currently holds in the stock
    ledger: a reservation (``reserved``), a permanent deduction
    (``committed``), or nothing any more (``released``/``restored``).
    """

    product_id = Identifier(required=True)
    name = String(required=True, max_length=200)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    image = String(max_length=500)
    sku = String(max_length=50)
    colour = String(max_length=50)
    size = String(max_length=2)
    inventory_status = String(choices=LineInventoryStatus, default=LineInventoryStatus.PENDING.value)

    @property
    def line_total(self):
        return money(self.price * self.quantity)


@ordering.entity(part_of="Order")
class StatusChange:
    status = String(required=True, choices=OrderStatus)
    changed_at = DateTime(required=True)
    note = String(max_length=500)
    updated_by = Identifier()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=20, unique=True)
    user_id = Identifier(required=True)
    items = HasMany(OrderItem)

    subtotal = Float(default=0.0)
    tax = Float(default=0.0)
    tax_rate = Float(default=0.0, min_value=0.0, max_value=1.0)
    shipping_cost = Float(default=0.0, min_value=0.0)
    discount = ValueObject(Discount)
    discount_amount = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="USD")

    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    use_same_address = Boolean(default=True)
    payment = ValueObject(PaymentInfo)

    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    status_history = HasMany(StatusChange)
    tracking = ValueObject(Tracking)
    refund = ValueObject(Refund)
    inventory_status = String(choices=InventoryStatus, default=InventoryStatus.PENDING.value)

    customer_notes = Text()
    internal_notes = Text()
    delivery_option = String(choices=DeliveryOption, default=DeliveryOption.STANDARD.value)
    source = String(choices=OrderSource, default=OrderSource.WEB.value)

    placed_at = DateTime()
    confirmed_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_match_its_components(self):
        expected = money(
            max(
                0.0,
                (self.subtotal or 0.0)
                + (self.tax or 0.0)
                + (self.shipping_cost or 0.0)
                - (self.discount_amount or 0.0),
            )
        )
        if abs(expected - (self.total or 0.0)) > 0.005:
            raise ValidationError({"total": ["Total must equal subtotal + tax + shipping - discount"]})

    # -------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------
    @property
    def items_count(self):
        return sum(item.quantity for item in self.items)

    @property
    def can_be_cancelled(self):
        return OrderStatus(self.status) in _OWNER_CANCELLABLE

    @property
    def is_completed(self):
        return OrderStatus(self.status) in _COMPLETED

    @property
    def allowed_transitions(self):
        return sorted(s.value for s in TRANSITIONS[OrderStatus(self.status)])

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        user_id,
        order_number,
        items,
        shipping_address,
        billing_address=None,
        tax_rate=0.0,
        shipping_cost=0.0,
        discount=None,
        payment_method=PaymentMethod.CREDIT_CARD.value,
        currency="USD",
        delivery_option=DeliveryOption.STANDARD.value,
        source=OrderSource.WEB.value,
        customer_notes=None,
        created_by=None,
    ):
        """Create a ``pending`` order from line snapshots.

        Args:
            items: dicts with product_id, name, price, quantity and optionally
                image, sku, colour, size.
            shipping_address: dict of Address fields.
            billing_address: dict of Address fields; the shipping address is
                used when omitted.
            discount: optional dict with code, amount and type; ``amount`` is a
                percentage or a money value depending on ``type``.
        """
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})

        offer = _discount_from(discount)
        totals = compute_totals(
            ((item["price"], item["quantity"]) for item in items),
            tax_rate=tax_rate,
            shipping_cost=shipping_cost,
            discount_amount=offer.value if offer else None,
            discount_type=offer.type if offer else None,
        )

        now = datetime.now(UTC)
        use_same_address = billing_address is None
        order = cls(
            order_number=order_number,
            user_id=user_id,
            items=[OrderItem(**item) for item in items],
            tax_rate=tax_rate or 0.0,
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping_cost=totals.shipping_cost,
            discount=offer,
            discount_amount=totals.discount_amount,
            total=totals.total,
            currency=currency,
            shipping_address=Address(**shipping_address),
            billing_address=Address(**(shipping_address if use_same_address else billing_address)),
            use_same_address=use_same_address,
            payment=PaymentInfo(method=payment_method, amount=totals.total, currency=currency),
            status=OrderStatus.PENDING.value,
            inventory_status=InventoryStatus.PENDING.value,
            delivery_option=delivery_option,
            source=source,
            customer_notes=customer_notes,
            placed_at=now,
            updated_at=now,
        )
        order._record_status(OrderStatus.PENDING.value, "Order created", created_by, now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                user_id=str(user_id),
                items_count=order.items_count,
                subtotal=order.subtotal,
                tax=order.tax,
                shipping_cost=order.shipping_cost,
                discount_amount=order.discount_amount,
                total=order.total,
                currency=currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def calculate_totals(self):
        """Recompute every money field from the lines and pricing inputs.

        Idempotent: calling it again without changing inputs leaves the order
        untouched.
        """
        totals = compute_totals(
            ((item.price, item.quantity) for item in self.items),
            tax_rate=self.tax_rate,
            shipping_cost=self.shipping_cost,
            discount_amount=self.discount.value if self.discount else None,
            discount_type=self.discount.type if self.discount else None,
        )
        with atomic_change(self):
            self.subtotal = totals.subtotal
            self.tax = totals.tax
            self.shipping_cost = totals.shipping_cost
            self.discount_amount = totals.discount_amount
            self.total = totals.total
            if self.payment and self.payment.amount != totals.total:
                self.payment = self.payment.replace(amount=totals.total)
        return totals

    def apply_discount(self, amount, kind=DiscountType.FIXED.value, code=None):
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"discount": ["Discounts can only be applied to pending orders"]})
        self.discount = Discount(code=code, value=amount, type=kind)
        self.calculate_totals()
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def transition(self, new_status, note=None, actor=None):
        """Move to ``new_status`` if the transition table allows it.

        Returns the previous status.
        """
        target = _parse_status(new_status)
        current = OrderStatus(self.status)
        if target not in TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        now = datetime.now(UTC)
        self.status = target.value
        if target in _STATUS_TIMESTAMPS:
            setattr(self, _STATUS_TIMESTAMPS[target], now)
        if target == OrderStatus.DELIVERED and self.tracking:
            self.tracking = Tracking(
                carrier=self.tracking.carrier,
                tracking_number=self.tracking.tracking_number,
                tracking_url=self.tracking.tracking_url,
                estimated_delivery=self.tracking.estimated_delivery,
                actual_delivery=now,
            )
        self.updated_at = now
        self._record_status(target.value, note, actor, now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                status=target.value,
                note=note,
                updated_by=actor,
                changed_at=now,
            )
        )
        return current.value

    def can_transition_to(self, new_status):
        return _parse_status(new_status) in TRANSITIONS[OrderStatus(self.status)]

    def _record_status(self, status, note, actor, now):
        self.add_status_history(StatusChange(status=status, changed_at=now, note=note, updated_by=actor))

    # -------------------------------------------------------------------
    # Inventory bookkeeping
    # -------------------------------------------------------------------
    def mark_inventory(self, status, items=None):
        """Record the ledger state of some lines (all by default) and the order summary."""
        for item in items if items is not None else self.items:
            item.inventory_status = status
        self.inventory_status = status
        self.updated_at = datetime.now(UTC)

    def lines_in(self, inventory_status):
        return [item for item in self.items if item.inventory_status == inventory_status]

    # -------------------------------------------------------------------
    # Payment, tracking, refund
    # -------------------------------------------------------------------
    def record_payment(self, status, transaction_id=None, method=None, gateway=None, failure_reason=None):
        now = datetime.now(UTC)
        self.payment = (self.payment or PaymentInfo(currency=self.currency)).replace(
            status=status,
            transaction_id=transaction_id,
            method=method or (self.payment.method if self.payment else PaymentMethod.CREDIT_CARD.value),
            gateway=gateway,
            failure_reason=failure_reason,
            payment_date=now,
            amount=self.total,
        )
        self.updated_at = now

        self.raise_(
            PaymentRecorded(
                order_id=str(self.id),
                method=self.payment.method,
                status=status,
                transaction_id=transaction_id,
                amount=self.total,
                recorded_at=now,
            )
        )

    def add_tracking(self, carrier, tracking_number, tracking_url=None, estimated_delivery=None):
        """Attach carrier tracking. Moving the order to ``shipped`` is the caller's job."""
        if OrderStatus(self.status) not in {OrderStatus.PROCESSING, OrderStatus.SHIPPED}:
            raise ValidationError(
                {"tracking": [f"Tracking cannot be added to an order in {self.status} status"]}
            )

        now = datetime.now(UTC)
        self.tracking = Tracking(
            carrier=carrier,
            tracking_number=tracking_number,
            tracking_url=tracking_url,
            estimated_delivery=estimated_delivery,
        )
        self.updated_at = now

        self.raise_(
            TrackingAdded(
                order_id=str(self.id),
                carrier=carrier,
                tracking_number=tracking_number,
                tracking_url=tracking_url,
                added_at=now,
            )
        )

    def process_refund(self, amount, reason=None, refund_id=None, actor=None):
        """Refund a returned order.

        The amount is checked before the status so that an oversized refund
        never changes anything, whatever the status.
        """
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Refund amount must be greater than zero"]})
        if amount > self.total:
            raise RefundExceedsTotal(amount, self.total)

        self.transition(OrderStatus.REFUNDED.value, note=reason or "Refund processed", actor=actor)

        now = datetime.now(UTC)
        self.refund = Refund(amount=money(amount), reason=reason, processed_at=now, refund_id=refund_id)
        if self.payment:
            self.payment = self.payment.replace(status=PaymentStatus.REFUNDED.value)

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                order_number=self.order_number,
                amount=money(amount),
                reason=reason,
                refund_id=refund_id,
                refunded_at=now,
            )
        )


def _parse_status(value):
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {value}"]})
