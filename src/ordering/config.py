"""Runtime settings for the Ordering domain.

Values come from the ``[custom]`` table of ``domain.toml`` (with the usual
``PROTEAN_ENV`` overlays) and fall back to the defaults below.
"""

from ordering.domain import ordering

DEFAULTS = {
    # Pricing policy
    "tax_rate": 0.10,
    "free_shipping_threshold": 100.0,
    "standard_shipping_cost": 10.0,
    "express_shipping_cost": 15.0,
    "overnight_shipping_cost": 25.0,
    "currency": "USD",
    # Stock ledger: attempts per single-product write before giving up
    "ledger_max_attempts": 3,
    # Order numbers regenerated on collision
    "order_number_attempts": 5,
    # Throttling of sensitive operations (requests per window)
    "throttle_limit": 10,
    "throttle_window_seconds": 60,
}


def setting(name):
    custom = ordering.config.get("custom") or {}
    if name in custom:
        return custom[name]
    return DEFAULTS[name]
