"""Order money arithmetic.

Pure functions over plain values so that the Order aggregate, checkout
summaries and invoices all price a basket the same way.
"""

from dataclasses import dataclass
from enum import Enum


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True)
class Totals:
    subtotal: float
    tax: float
    shipping_cost: float
    discount_amount: float
    total: float


def money(amount):
    return round(float(amount or 0.0), 2)


def discount_amount_for(subtotal, amount=None, kind=None):
    """Money value of a discount.

    A percentage discount is ``amount`` percent of the subtotal; a fixed
    discount is ``amount`` itself. Neither can exceed the subtotal.
    """
    if not amount:
        return 0.0
    if kind == DiscountType.PERCENTAGE.value:
        value = subtotal * amount / 100.0
    else:
        value = amount
    return money(min(max(value, 0.0), subtotal))


def compute_totals(lines, tax_rate=0.0, shipping_cost=0.0, discount_amount=None, discount_type=None):
    """Price a basket.

    ``lines`` is an iterable of ``(unit_price, quantity)`` pairs. The result
    satisfies ``total = subtotal + tax + shipping_cost - discount_amount``,
    clamped at zero.
    """
    subtotal = money(sum(price * quantity for price, quantity in lines))
    tax = money(subtotal * (tax_rate or 0.0))
    shipping = money(shipping_cost)
    discount = discount_amount_for(subtotal, discount_amount, discount_type)
    total = money(max(0.0, subtotal + tax + shipping - discount))
    return Totals(
        subtotal=subtotal,
        tax=tax,
        shipping_cost=shipping,
        discount_amount=discount,
        total=total,
    )
