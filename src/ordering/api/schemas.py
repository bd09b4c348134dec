"""Pydantic request/response schemas for the Ordering API.

These are external contracts, kept separate from internal Protean commands.
Every response body is wrapped in an ``Envelope``.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------
class Envelope(BaseModel):
    success: bool = True
    data: Any = None
    message: str | None = None


def ok(data=None, message=None) -> Envelope:
    return Envelope(data=data, message=message)


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str
    street: str
    city: str
    state: str
    zip_code: str
    country: str = "USA"
    phone: str | None = None


class DiscountSchema(BaseModel):
    code: str | None = None
    amount: float = Field(ge=0)
    type: str = "fixed"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)
    colour: str
    size: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "quantity": 2,
                    "colour": "black",
                    "size": "md",
                }
            ]
        }
    }


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutSummaryRequest(BaseModel):
    delivery_option: str = "standard"


class CompleteCheckoutRequest(BaseModel):
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str = "credit_card"
    payment_id: str | None = None
    delivery_option: str = "standard"
    customer_notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "shipping_address": {
                        "full_name": "Jane Doe",
                        "street": "123 Main St",
                        "city": "Springfield",
                        "state": "IL",
                        "zip_code": "62701",
                        "country": "USA",
                    },
                    "payment_method": "stripe",
                    "payment_id": "pi_0123456789abcdef01234567",
                    "delivery_option": "standard",
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderLineRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    colour: str | None = None
    size: str | None = None


class CreateOrderRequest(BaseModel):
    items: list[OrderLineRequest] = Field(min_length=1)
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str = "credit_card"
    delivery_option: str = "standard"
    customer_notes: str | None = None
    discount: DiscountSchema | None = None


class UpdateStatusRequest(BaseModel):
    status: str
    note: str | None = None


class TrackingRequest(BaseModel):
    carrier: str
    tracking_number: str
    tracking_url: str | None = None
    estimated_delivery: datetime | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class RefundRequest(BaseModel):
    amount: float
    reason: str | None = None


# ---------------------------------------------------------------------------
# Product stock administration
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str
    sku: str
    price: float = Field(ge=0)
    colour: str
    size: str
    total_stock: int = Field(ge=0, default=0)
    image: str | None = None
    category: str | None = None
    is_featured: bool = False


class AdjustStockRequest(BaseModel):
    total_stock: int = Field(ge=0)
    reason: str | None = None
