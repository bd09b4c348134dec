"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance keeps its own state; nothing is shared across users.
"""

from dataclasses import dataclass, field


@dataclass
class ShopperState:
    """Tracks one simulated shopper from cart to order."""

    user_id: str
    token: str
    item_ids: list[str] = field(default_factory=list)
    payment_id: str | None = None
    order_id: str | None = None
    order_status: str | None = None
