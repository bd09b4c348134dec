"""Payment gateway port and its in-process mock.

Checkout asks the gateway for a payment intent before the order is placed,
and checks the intent again when the client reports completion. Refunds go
back through the same gateway. ``get_gateway()`` / ``set_gateway()`` swap the
implementation (tests configure the mock to decline).
"""

import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import uuid4


@dataclass(frozen=True)
class PaymentHandle:
    """A payment intent the client completes on its side."""

    payment_id: str
    client_secret: str
    amount_cents: int
    currency: str
    status: str = "requires_payment_method"


@dataclass(frozen=True)
class PaymentVerification:
    payment_id: str
    succeeded: bool
    status: str
    failure_reason: str | None = None


class PaymentGateway(ABC):
    @abstractmethod
    def create_payment(self, amount: float, currency: str) -> PaymentHandle:
        """Open a payment intent for ``amount`` in major units."""
        ...

    @abstractmethod
    def verify(self, payment_id: str) -> PaymentVerification:
        """Report whether the client completed the payment."""
        ...

    @abstractmethod
    def refund(self, payment_id: str, amount: float) -> str:
        """Refund part or all of a payment; returns the refund id."""
        ...


class MockPaymentGateway(PaymentGateway):
    """Stripe-shaped fake: every intent succeeds unless told otherwise."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.payments: dict[str, PaymentHandle] = {}
        self.refunds: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_payment(self, amount: float, currency: str) -> PaymentHandle:
        payment_id = f"pi_{uuid4().hex[:24]}"
        handle = PaymentHandle(
            payment_id=payment_id,
            client_secret=f"{payment_id}_secret_{secrets.token_hex(12)}",
            amount_cents=int(round(amount * 100)),
            currency=currency.lower(),
        )
        self.payments[payment_id] = handle
        return handle

    def verify(self, payment_id: str) -> PaymentVerification:
        if payment_id not in self.payments:
            return PaymentVerification(
                payment_id=payment_id,
                succeeded=False,
                status="failed",
                failure_reason="Unknown payment",
            )
        if not self.should_succeed:
            return PaymentVerification(
                payment_id=payment_id,
                succeeded=False,
                status="failed",
                failure_reason=self.failure_reason,
            )
        return PaymentVerification(payment_id=payment_id, succeeded=True, status="succeeded")

    def refund(self, payment_id: str, amount: float) -> str:
        refund_id = f"re_{uuid4().hex[:24]}"
        self.refunds.append({"payment_id": payment_id, "amount": amount, "refund_id": refund_id})
        return refund_id


_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = MockPaymentGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    global _current_gateway
    _current_gateway = None
