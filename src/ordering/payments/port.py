"""Payment gateway port (abstract interface).

The order service records whatever a gateway returns and only looks at
``success``; the remaining fields are kept on the order for reference.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentOutcome:
    """Result of a payment attempt."""

    success: bool
    status: str
    transaction_id: str | None = None
    authorization_code: str | None = None
    amount: float | None = None
    message: str | None = None


@dataclass(frozen=True)
class PaymentStatus:
    """Gateway-side status of an earlier transaction."""

    transaction_id: str
    status: str
    message: str | None = None


@dataclass(frozen=True)
class RefundOutcome:
    """Result of a refund request."""

    success: bool
    status: str
    refund_id: str | None = None
    amount: float | None = None
    reason: str | None = None
    message: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def process_payment(self, order_id: str, amount: float, currency: str, payment_method: str) -> PaymentOutcome:
        """Charge `amount` for the order."""
        ...

    @abstractmethod
    def check_status(self, transaction_id: str) -> PaymentStatus:
        """Look up a transaction. Raises ``PaymentError`` for ids the gateway never issued."""
        ...

    @abstractmethod
    def process_refund(
        self,
        transaction_id: str,
        amount: float | None = None,
        reason: str | None = None,
    ) -> RefundOutcome:
        """Refund all or part of a completed transaction."""
        ...
