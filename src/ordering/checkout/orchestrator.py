"""Checkout: turns a cart (or an explicit item list) into a pending order.

Placing an order:

1. Re-check every line against live stock; all failing lines are reported
   together as a ``StockConflict``.
2. Price the basket with the configured policy.
3. Create the order in ``pending`` status with line snapshots.
4. Reserve stock line by line. If a line cannot be reserved, the lines
   already reserved are released (best-effort, failures are logged), the
   order is cancelled with ``inventory_status="failed"`` and the reservation
   error is raised. No order ever holds stock for only some of its lines.
5. Clear the cart, only after all of the above succeeded.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.cart.cart import cart_for_user
from ordering.cart.items import ClearCart
from ordering.checkout.payment import get_gateway
from ordering.checkout.pricing import PricingPolicy
from ordering.config import setting
from ordering.errors import DuplicateKey, EmptyCart, NotFound, StockConflict
from ordering.order.numbering import generate_order_number
from ordering.order.order import (
    DeliveryOption,
    InventoryStatus,
    LineInventoryStatus,
    Order,
    OrderSource,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from ordering.order.queries import order_number_taken
from ordering.order.totals import compute_totals
from ordering.stock.ledger import InventoryLedger

logger = structlog.get_logger(__name__)


class CheckoutService:
    def __init__(self, ledger=None, gateway=None, policy=None):
        self.ledger = ledger or InventoryLedger()
        self.gateway = gateway or get_gateway()
        self.policy = policy or PricingPolicy.from_config()

    # -------------------------------------------------------------------
    # Summary (no side effects on carts, orders or stock)
    # -------------------------------------------------------------------
    def summarize(self, user_id, delivery_option=DeliveryOption.STANDARD.value):
        cart = self._non_empty_cart(user_id)
        products = self._check_stock(
            [(str(item.id), item.product_id, item.quantity, item.colour, item.size) for item in cart.items]
        )

        lines = [
            {
                "item_id": str(item.id),
                "product_id": str(item.product_id),
                "name": products[str(item.product_id)].name,
                "colour": item.colour,
                "size": item.size,
                "price": item.price,
                "quantity": item.quantity,
                "line_total": item.line_total,
            }
            for item in cart.items
        ]
        totals = self._price([(item.price, item.quantity) for item in cart.items], delivery_option)
        handle = self.gateway.create_payment(totals.total, self.policy.currency)

        return {
            "items": lines,
            "items_count": cart.total_items,
            "subtotal": totals.subtotal,
            "tax": totals.tax,
            "tax_rate": self.policy.tax_rate,
            "shipping_cost": totals.shipping_cost,
            "total": totals.total,
            "currency": self.policy.currency,
            "delivery_option": delivery_option,
            "free_shipping_note": self.policy.free_shipping_note(totals.subtotal),
            "payment": {
                "payment_id": handle.payment_id,
                "client_secret": handle.client_secret,
                "amount_cents": handle.amount_cents,
                "currency": handle.currency,
                "status": handle.status,
            },
        }

    # -------------------------------------------------------------------
    # Cart checkout
    # -------------------------------------------------------------------
    def checkout(
        self,
        user_id,
        shipping_address,
        billing_address=None,
        payment_method=PaymentMethod.CREDIT_CARD.value,
        payment_id=None,
        delivery_option=DeliveryOption.STANDARD.value,
        customer_notes=None,
        discount=None,
    ):
        """Place an order for everything in the user's cart.

        When ``payment_id`` is given the payment intent must have succeeded;
        the order records it as paid but stays ``pending`` until staff
        confirm it.
        """
        cart = self._non_empty_cart(user_id)
        products = self._check_stock(
            [(str(item.id), item.product_id, item.quantity, item.colour, item.size) for item in cart.items]
        )

        verification = None
        if payment_id:
            verification = self.gateway.verify(payment_id)
            if not verification.succeeded:
                raise ValidationError(
                    {"payment": [f"Payment {payment_id} was not completed: {verification.failure_reason}"]}
                )

        items = [
            _snapshot(products[str(item.product_id)], item.quantity, item.price, item.colour, item.size)
            for item in cart.items
        ]
        order = self._place(
            user_id,
            items,
            shipping_address,
            billing_address=billing_address,
            payment_method=payment_method,
            delivery_option=delivery_option,
            customer_notes=customer_notes,
            discount=discount,
            source=OrderSource.WEB.value,
        )

        if verification is not None:
            order.record_payment(
                PaymentStatus.COMPLETED.value,
                transaction_id=payment_id,
                method=payment_method,
                gateway="mock",
            )
            current_domain.repository_for(Order).add(order)

        current_domain.process(ClearCart(user_id=user_id), asynchronous=False)

        logger.info(
            "checkout_completed",
            user_id=str(user_id),
            order_id=str(order.id),
            order_number=order.order_number,
            total=order.total,
        )
        return order

    # -------------------------------------------------------------------
    # Direct placement from an item list
    # -------------------------------------------------------------------
    def place_order(
        self,
        user_id,
        items,
        shipping_address,
        billing_address=None,
        payment_method=PaymentMethod.CREDIT_CARD.value,
        delivery_option=DeliveryOption.STANDARD.value,
        customer_notes=None,
        discount=None,
        source=OrderSource.API.value,
    ):
        """Place an order without a cart.

        Args:
            items: dicts with product_id and quantity, optionally colour and
                size. Prices always come from the product, never the caller.
        """
        if not items:
            raise ValidationError({"items": ["Order must contain at least one item"]})

        requested = [
            (None, item["product_id"], item["quantity"], item.get("colour"), item.get("size")) for item in items
        ]
        products = self._check_stock(requested)

        snapshots = []
        for _, product_id, quantity, colour, size in requested:
            product = products[str(product_id)]
            snapshots.append(
                _snapshot(product, quantity, product.price, colour or product.colour, size or product.size)
            )

        return self._place(
            user_id,
            snapshots,
            shipping_address,
            billing_address=billing_address,
            payment_method=payment_method,
            delivery_option=delivery_option,
            customer_notes=customer_notes,
            discount=discount,
            source=source,
        )

    # -------------------------------------------------------------------
    # Shared steps
    # -------------------------------------------------------------------
    def _non_empty_cart(self, user_id):
        cart = cart_for_user(user_id)
        if cart is None or not cart.items:
            raise EmptyCart()
        return cart

    def _check_stock(self, requested):
        """Load every product and report all lines that cannot be fulfilled.

        ``requested`` holds ``(item_id, product_id, quantity, colour, size)``
        tuples; ``item_id`` is the cart line id, or ``None`` outside a cart.
        ``colour``/``size`` of ``None`` accept the product's own variant.
        Quantities of lines for the same product are added up, and every line
        of an oversubscribed product is reported.
        """
        products = {}
        wanted = {}
        conflicts = []

        for line in requested:
            _, product_id, quantity, colour, size = line
            key = str(product_id)
            if key not in products:
                try:
                    products[key] = self.ledger.product(product_id)
                except NotFound:
                    products[key] = None
            product = products[key]

            if product is None or not product.is_active:
                conflicts.append(_conflict(line, product, "Product is no longer available"))
                continue
            if (colour and colour != product.colour) or (size and size != product.size):
                conflicts.append(_conflict(line, product, "Requested colour/size is not available"))
                continue
            wanted.setdefault(key, []).append(line)

        for key, lines in wanted.items():
            product = products[key]
            if product.available_stock < sum(line[2] for line in lines):
                conflicts.extend(
                    _conflict(line, product, f"Only {product.available_stock} items available") for line in lines
                )

        if conflicts:
            raise StockConflict(conflicts)
        return products

    def _price(self, lines, delivery_option, discount=None):
        lines = list(lines)
        subtotal = sum(price * quantity for price, quantity in lines)
        return compute_totals(
            lines,
            tax_rate=self.policy.tax_rate,
            shipping_cost=self.policy.shipping_cost(subtotal, delivery_option),
            discount_amount=(discount or {}).get("amount"),
            discount_type=(discount or {}).get("type"),
        )

    def _place(
        self,
        user_id,
        items,
        shipping_address,
        billing_address,
        payment_method,
        delivery_option,
        customer_notes,
        discount,
        source,
    ):
        totals = self._price([(item["price"], item["quantity"]) for item in items], delivery_option, discount)
        order = self._create_order(
            user_id=user_id,
            items=items,
            shipping_address=shipping_address,
            billing_address=billing_address,
            tax_rate=self.policy.tax_rate,
            shipping_cost=totals.shipping_cost,
            discount=discount,
            payment_method=payment_method,
            currency=self.policy.currency,
            delivery_option=delivery_option,
            source=source,
            customer_notes=customer_notes,
            created_by=user_id,
        )
        self._reserve(order)
        return order

    def _create_order(self, **fields):
        """Persist a new order under a fresh order number, regenerating on collision."""
        repo = current_domain.repository_for(Order)
        attempts = setting("order_number_attempts")

        for attempt in range(1, attempts + 1):
            order_number = generate_order_number()
            if order_number_taken(order_number):
                logger.warning("order_number_collision", order_number=order_number, attempt=attempt)
                continue

            order = Order.create(order_number=order_number, **fields)
            try:
                repo.add(order)
            except ValidationError as exc:
                if "order_number" not in exc.messages:
                    raise
                logger.warning("order_number_collision", order_number=order_number, attempt=attempt)
                continue
            return order

        raise DuplicateKey("order_number", order_number)

    def _reserve(self, order):
        reserved = []
        try:
            for item in order.items:
                self.ledger.reserve(item.product_id, item.quantity)
                reserved.append(item)
        except Exception as exc:
            logger.warning(
                "checkout_reservation_failed",
                order_id=str(order.id),
                product_id=str(item.product_id),
                reserved_lines=len(reserved),
                error=str(exc),
            )
            self._abandon(order, reserved)
            raise

        order.mark_inventory(LineInventoryStatus.RESERVED.value)
        current_domain.repository_for(Order).add(order)

    def _abandon(self, order, reserved):
        """Undo a half-reserved order. Nothing here may mask the original error."""
        released = []
        for item in reserved:
            try:
                self.ledger.release(item.product_id, item.quantity)
                released.append(item)
            except Exception as exc:
                logger.error(
                    "checkout_release_failed",
                    order_id=str(order.id),
                    product_id=str(item.product_id),
                    quantity=item.quantity,
                    error=str(exc),
                )

        order.mark_inventory(LineInventoryStatus.RELEASED.value, released)
        order.transition(OrderStatus.CANCELLED.value, note="Stock reservation failed")
        order.inventory_status = InventoryStatus.FAILED.value
        try:
            current_domain.repository_for(Order).add(order)
        except Exception as exc:
            logger.error("checkout_abandon_save_failed", order_id=str(order.id), error=str(exc))


def _snapshot(product, quantity, price, colour, size):
    return {
        "product_id": str(product.id),
        "name": product.name,
        "price": price,
        "quantity": quantity,
        "image": product.image,
        "sku": product.sku,
        "colour": colour,
        "size": size,
    }


def _conflict(line, product, reason):
    item_id, product_id, quantity, colour, size = line
    return {
        "item_id": item_id,
        "product_id": str(product_id),
        "name": product.name if product is not None else None,
        "colour": colour or (product.colour if product is not None else None),
        "size": size or (product.size if product is not None else None),
        "requested": quantity,
        "available": product.available_stock if product is not None and product.is_active else 0,
        "reason": reason,
    }
