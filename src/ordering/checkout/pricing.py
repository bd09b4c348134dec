"""Shipping and tax policy applied at checkout."""

from dataclasses import dataclass

from protean.exceptions import ValidationError

from ordering.config import setting
from ordering.order.order import DeliveryOption
from ordering.order.totals import money


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: float
    free_shipping_threshold: float
    standard_shipping_cost: float
    express_shipping_cost: float
    overnight_shipping_cost: float
    currency: str = "USD"

    @classmethod
    def from_config(cls):
        return cls(
            tax_rate=setting("tax_rate"),
            free_shipping_threshold=setting("free_shipping_threshold"),
            standard_shipping_cost=setting("standard_shipping_cost"),
            express_shipping_cost=setting("express_shipping_cost"),
            overnight_shipping_cost=setting("overnight_shipping_cost"),
            currency=setting("currency"),
        )

    def shipping_cost(self, subtotal, delivery_option=DeliveryOption.STANDARD.value):
        try:
            option = DeliveryOption(delivery_option)
        except ValueError:
            raise ValidationError({"delivery_option": [f"Unknown delivery option: {delivery_option}"]})
        if option == DeliveryOption.PICKUP:
            return 0.0
        if option == DeliveryOption.EXPRESS:
            return money(self.express_shipping_cost)
        if option == DeliveryOption.OVERNIGHT:
            return money(self.overnight_shipping_cost)
        if subtotal >= self.free_shipping_threshold:
            return 0.0
        return money(self.standard_shipping_cost)

    def free_shipping_note(self, subtotal):
        """Nudge shown in checkout summaries while standard shipping is still charged."""
        if subtotal >= self.free_shipping_threshold:
            return None
        remaining = money(self.free_shipping_threshold - subtotal)
        return f"Add ${remaining:.2f} more to get free shipping!"
