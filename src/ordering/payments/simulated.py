"""Simulated payment gateway.

Stands in for the real acquirer: every call waits `delay_seconds` and payments
fail at random with probability `failure_rate`. Transaction ids start with
``TR`` and refund ids with ``RF``. Pass a seeded ``random.Random`` and a zero
delay for deterministic tests.
"""

import random
import time
from uuid import uuid4

from ordering.errors import PaymentError
from ordering.payments.port import PaymentGateway, PaymentOutcome, PaymentStatus, RefundOutcome


def _reference(prefix: str) -> str:
    return f"{prefix}{int(time.time() * 1000)}{uuid4().hex[:6].upper()}"


class SimulatedGateway(PaymentGateway):
    def __init__(self, delay_seconds: float = 1.0, failure_rate: float = 0.1, rng: random.Random | None = None):
        self.delay_seconds = delay_seconds
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()
        self.calls: list[dict] = []

    def _wait(self):
        if self.delay_seconds > 0:
            time.sleep(self.delay_seconds)

    def process_payment(self, order_id, amount, currency, payment_method):
        self.calls.append({"method": "process_payment", "order_id": order_id, "amount": amount})
        self._wait()

        if self._rng.random() < self.failure_rate:
            return PaymentOutcome(
                success=False,
                status="failed",
                transaction_id=_reference("TR"),
                amount=amount,
                message="Pago rechazado por el procesador",
            )
        return PaymentOutcome(
            success=True,
            status="completed",
            transaction_id=_reference("TR"),
            authorization_code=uuid4().hex[:8].upper(),
            amount=amount,
            message="Pago procesado correctamente",
        )

    def check_status(self, transaction_id):
        self.calls.append({"method": "check_status", "transaction_id": transaction_id})
        self._wait()

        if not transaction_id or not transaction_id.startswith("TR"):
            raise PaymentError("ID de transacción inválido")
        return PaymentStatus(transaction_id=transaction_id, status="completed", message="Transacción completada")

    def process_refund(self, transaction_id, amount=None, reason=None):
        self.calls.append(
            {"method": "process_refund", "transaction_id": transaction_id, "amount": amount, "reason": reason}
        )
        self._wait()

        if not transaction_id or not transaction_id.startswith("TR"):
            raise PaymentError("ID de transacción inválido")
        return RefundOutcome(
            success=True,
            status="completed",
            refund_id=_reference("RF"),
            amount=amount,
            reason=reason,
            message="Reembolso procesado correctamente",
        )
