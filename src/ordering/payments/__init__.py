"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations. The default is
a SimulatedGateway configured from the active domain's settings.
"""

from protean.utils.globals import current_domain

from ordering.payments.port import PaymentGateway
from ordering.payments.simulated import SimulatedGateway
from ordering.settings import OrderingSettings

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Must be called within a domain context the first time."""
    global _current_gateway
    if _current_gateway is None:
        settings = OrderingSettings.from_domain(current_domain)
        _current_gateway = SimulatedGateway(
            delay_seconds=settings.payment_delay_seconds,
            failure_rate=settings.payment_failure_rate,
        )
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
