"""Business-rule failures raised by the ordering domain.

Every error is a Protean ``ValidationError`` so that domain code and tests can
keep treating them as rule violations, while the API layer maps each class to
an HTTP status and an error title through ``status_code`` and ``title``.
"""

from protean.exceptions import ValidationError


class OrderingError(ValidationError):
    status_code = 400
    title = "Validation Error"

    def __init__(self, message, field="_entity", details=None):
        super().__init__({field: [message]})
        self.message = message
        self.details = details if details is not None else {}

    def __str__(self):
        return self.message


class NotFound(OrderingError):
    status_code = 404
    title = "Not Found"

    def __init__(self, resource, identifier=None):
        message = f"{resource} not found" if identifier is None else f"{resource} {identifier} not found"
        super().__init__(message, field=resource.lower())
        self.resource = resource


class InsufficientStock(OrderingError):
    status_code = 409
    title = "Insufficient Stock"

    def __init__(self, product_id, requested, available, message=None):
        super().__init__(
            message or f"Only {available} items available",
            field="quantity",
            details={"product_id": str(product_id), "requested": requested, "available": available},
        )
        self.product_id = str(product_id)
        self.requested = requested
        self.available = available


class VariantUnavailable(OrderingError):
    title = "Variant Not Available"

    def __init__(self, product_id, colour, size):
        super().__init__(
            "The requested colour/size combination is not available",
            field="variant",
            details={"product_id": str(product_id), "colour": colour, "size": size},
        )


class EmptyCart(OrderingError):
    title = "Empty Cart"

    def __init__(self):
        super().__init__("Your cart is empty. Please add items before checkout.", field="cart")


class StockConflict(OrderingError):
    """Raised with every cart line that cannot be fulfilled, not just the first."""

    status_code = 409
    title = "Stock Issues"

    def __init__(self, conflicts):
        super().__init__(
            "Some items in your cart are no longer available in the requested quantity",
            field="items",
            details=conflicts,
        )
        self.conflicts = conflicts


class InvalidTransition(OrderingError):
    status_code = 409
    title = "Invalid Status Transition"

    def __init__(self, current, target):
        super().__init__(f"Cannot change status from {current} to {target}", field="status")
        self.current = current
        self.target = target


class RefundExceedsTotal(OrderingError):
    title = "Invalid Refund Amount"

    def __init__(self, amount, total):
        super().__init__(
            "Refund amount cannot exceed order total",
            field="amount",
            details={"amount": amount, "total": total},
        )


class DuplicateKey(OrderingError):
    status_code = 409
    title = "Duplicate Key"

    def __init__(self, field, value):
        super().__init__(f"{field} {value} is already taken", field=field)


class ConcurrencyConflict(OrderingError):
    status_code = 409
    title = "Concurrent Update"

    def __init__(self, resource, identifier):
        super().__init__(
            f"{resource} {identifier} is being updated by another request, please retry",
            field=resource.lower(),
        )
