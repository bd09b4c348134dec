"""Ordering bounded context: Carts, Orders and the stock they reserve.

Handles the per-customer shopping cart, the order state machine with its
status history, the product stock ledger (reserve, release, commit, restore)
and the checkout flow that turns a cart into an order.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
