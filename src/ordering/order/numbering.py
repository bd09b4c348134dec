"""Human-readable order numbers: ``ORD`` + 8 clock digits + 4 random base-36 characters."""

import secrets
import string
import time

_ALPHABET = string.digits + string.ascii_uppercase


def generate_order_number(clock=time.time):
    millis = str(int(clock() * 1000))
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(4))
    return f"ORD{millis[-8:]}{suffix}"
