"""Plain-dict views of aggregates for API responses."""

from ordering.order.order import OrderStatus


def _iso(value):
    return value.isoformat() if value else None


def cart_view(cart, user_id=None):
    if cart is None:
        return {"id": None, "user_id": user_id, "items": [], "total_items": 0, "total_amount": 0.0}
    return {
        "id": str(cart.id),
        "user_id": str(cart.user_id),
        "items": [
            {
                "id": str(item.id),
                "product_id": str(item.product_id),
                "name": item.name,
                "colour": item.colour,
                "size": item.size,
                "quantity": item.quantity,
                "price": item.price,
                "line_total": item.line_total,
                "added_at": _iso(item.added_at),
            }
            for item in cart.items
        ],
        "total_items": cart.total_items,
        "total_amount": cart.total_amount,
        "updated_at": _iso(cart.updated_at),
    }


def _address(address):
    if address is None:
        return None
    return {
        "full_name": address.full_name,
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "zip_code": address.zip_code,
        "country": address.country,
        "phone": address.phone,
    }


def order_summary(order):
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "user_id": str(order.user_id),
        "status": order.status,
        "items_count": order.items_count,
        "total": order.total,
        "currency": order.currency,
        "inventory_status": order.inventory_status,
        "placed_at": _iso(order.placed_at),
    }


def order_view(order):
    payment = order.payment
    tracking = order.tracking
    refund = order.refund
    return {
        **order_summary(order),
        "items": [
            {
                "id": str(item.id),
                "product_id": str(item.product_id),
                "name": item.name,
                "sku": item.sku,
                "image": item.image,
                "colour": item.colour,
                "size": item.size,
                "price": item.price,
                "quantity": item.quantity,
                "line_total": item.line_total,
                "inventory_status": item.inventory_status,
            }
            for item in order.items
        ],
        "subtotal": order.subtotal,
        "tax": order.tax,
        "tax_rate": order.tax_rate,
        "shipping_cost": order.shipping_cost,
        "discount": (
            {"code": order.discount.code, "amount": order.discount.value, "type": order.discount.type}
            if order.discount
            else None
        ),
        "discount_amount": order.discount_amount,
        "shipping_address": _address(order.shipping_address),
        "billing_address": _address(order.billing_address),
        "use_same_address": order.use_same_address,
        "payment": (
            {
                "method": payment.method,
                "status": payment.status,
                "transaction_id": payment.transaction_id,
                "payment_date": _iso(payment.payment_date),
                "amount": payment.amount,
                "currency": payment.currency,
            }
            if payment
            else None
        ),
        "status_history": [
            {
                "status": change.status,
                "changed_at": _iso(change.changed_at),
                "note": change.note,
                "updated_by": str(change.updated_by) if change.updated_by else None,
            }
            for change in sorted(order.status_history, key=lambda c: c.changed_at)
        ],
        "tracking": (
            {
                "carrier": tracking.carrier,
                "tracking_number": tracking.tracking_number,
                "tracking_url": tracking.tracking_url,
                "estimated_delivery": _iso(tracking.estimated_delivery),
                "actual_delivery": _iso(tracking.actual_delivery),
            }
            if tracking
            else None
        ),
        "refund": (
            {
                "amount": refund.amount,
                "reason": refund.reason,
                "processed_at": _iso(refund.processed_at),
                "refund_id": refund.refund_id,
            }
            if refund
            else None
        ),
        "delivery_option": order.delivery_option,
        "source": order.source,
        "customer_notes": order.customer_notes,
        "can_be_cancelled": order.can_be_cancelled,
        "is_completed": order.is_completed,
        "allowed_transitions": order.allowed_transitions,
        "confirmed_at": _iso(order.confirmed_at),
        "shipped_at": _iso(order.shipped_at),
        "delivered_at": _iso(order.delivered_at),
        "cancelled_at": _iso(order.cancelled_at),
    }


def invoice_view(order):
    """Printable invoice: who, what, how much."""
    return {
        "invoice_number": f"INV-{order.order_number}",
        "order_number": order.order_number,
        "date": _iso(order.placed_at),
        "bill_to": _address(order.billing_address or order.shipping_address),
        "ship_to": _address(order.shipping_address),
        "lines": [
            {
                "description": f"{item.name} ({item.colour}/{item.size})",
                "sku": item.sku,
                "quantity": item.quantity,
                "unit_price": item.price,
                "amount": item.line_total,
            }
            for item in order.items
        ],
        "subtotal": order.subtotal,
        "discount": order.discount_amount,
        "tax_rate": order.tax_rate,
        "tax": order.tax,
        "shipping": order.shipping_cost,
        "total": order.total,
        "currency": order.currency,
        "payment_status": order.payment.status if order.payment else None,
        "refunded": order.status == OrderStatus.REFUNDED.value,
    }


def stock_view(product):
    return {
        "id": str(product.id),
        "name": product.name,
        "sku": product.sku,
        "price": product.price,
        "colour": product.colour,
        "size": product.size,
        "total_stock": product.total_stock,
        "sold_count": product.sold_count,
        "available_stock": product.available_stock,
        "in_stock": product.in_stock,
        "is_active": product.is_active,
    }
