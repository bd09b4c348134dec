"""Faker-based data generators for Locust load test scenarios.

Payloads match the field names of the API's Pydantic request schemas.
"""

import random
import uuid

from faker import Faker

fake = Faker()

SIZES = ["sm", "md", "lg", "xl"]
COLOURS = ["black", "white", "navy", "olive", "red"]


def product_data(stock: int = 10_000) -> dict:
    colour = random.choice(COLOURS)
    size = random.choice(SIZES)
    return {
        "name": fake.catch_phrase()[:60],
        "sku": f"LT-{colour[:3].upper()}-{size.upper()}-{uuid.uuid4().hex[:6]}",
        "price": round(random.uniform(5.0, 80.0), 2),
        "colour": colour,
        "size": size,
        "total_stock": stock,
    }


def cart_item_data(product: dict, quantity: int | None = None) -> dict:
    return {
        "product_id": product["id"],
        "quantity": quantity or random.randint(1, 3),
        "colour": product["colour"],
        "size": product["size"],
    }


def address_data() -> dict:
    return {
        "full_name": fake.name(),
        "street": fake.street_address(),
        "city": fake.city(),
        "state": fake.state_abbr(),
        "zip_code": fake.zipcode(),
        "country": "USA",
        "phone": fake.numerify("+1-###-###-####"),
    }


def checkout_data(payment_id: str | None = None) -> dict:
    return {
        "shipping_address": address_data(),
        "payment_method": "stripe" if payment_id else "credit_card",
        "payment_id": payment_id,
        "delivery_option": random.choice(["standard", "standard", "express", "pickup"]),
    }
