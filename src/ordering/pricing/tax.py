"""Tax policy: the current rate and how tax is computed from an amount."""

import threading
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError


def validate_tax_rate(rate) -> float:
    """Return `rate` as a float, or raise when it is not a number within [0, 100]."""
    try:
        value = float(rate)
    except (TypeError, ValueError):
        raise ValidationError({"tax_rate": ["La tasa de IVA debe ser un número"]}) from None
    if not 0 <= value <= 100:
        raise ValidationError({"tax_rate": ["La tasa de IVA debe estar entre 0 y 100"]})
    return value


def calculate_tax(amount: float, rate: float) -> int:
    """Tax on `amount` at `rate` percent, rounded half up to a whole unit."""
    tax = Decimal(str(amount)) * Decimal(str(rate)) / Decimal(100)
    return int(tax.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class TaxPolicy(ABC):
    @abstractmethod
    def get_current_rate(self) -> float: ...

    @abstractmethod
    def calculate(self, amount: float, rate: float) -> int: ...


class ConfiguredTaxPolicy(TaxPolicy):
    """A single rate for every order, adjustable at runtime by an administrator."""

    def __init__(self, rate: float):
        self._lock = threading.Lock()
        self._rate = validate_tax_rate(rate)

    def get_current_rate(self):
        with self._lock:
            return self._rate

    def set_rate(self, rate) -> float:
        value = validate_tax_rate(rate)
        with self._lock:
            self._rate = value
        return value

    def calculate(self, amount, rate):
        return calculate_tax(amount, rate)
