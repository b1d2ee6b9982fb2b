"""Business configuration for order placement.

Values come from the ``[custom]`` table of ``domain.toml`` and can be
overridden per process through ``ORDERING_*`` environment variables. The
resulting object is handed to the order service at construction, so tests
and tenants can run with their own tax rate and shipping rules.
"""

import os
from dataclasses import dataclass, fields

from protean.exceptions import ConfigurationError

_ENV_OVERRIDES = {
    "tax_rate": "ORDERING_TAX_RATE",
    "free_shipping_threshold": "ORDERING_FREE_SHIPPING_THRESHOLD",
    "shipping_fee": "ORDERING_SHIPPING_FEE",
    "currency": "ORDERING_CURRENCY",
    "payment_delay_seconds": "ORDERING_PAYMENT_DELAY",
    "payment_failure_rate": "ORDERING_PAYMENT_FAILURE_RATE",
}


@dataclass(frozen=True)
class OrderingSettings:
    tax_rate: float = 19.0
    free_shipping_threshold: float = 100000.0
    shipping_fee: float = 5000.0
    currency: str = "CLP"
    payment_delay_seconds: float = 1.0
    payment_failure_rate: float = 0.1

    def __post_init__(self):
        if not 0 <= self.tax_rate <= 100:
            raise ConfigurationError(f"tax_rate must be between 0 and 100, got {self.tax_rate}")
        if self.free_shipping_threshold < 0 or self.shipping_fee < 0:
            raise ConfigurationError("Shipping threshold and fee must be non-negative")
        if not 0 <= self.payment_failure_rate <= 1:
            raise ConfigurationError(f"payment_failure_rate must be between 0 and 1, got {self.payment_failure_rate}")
        if self.payment_delay_seconds < 0:
            raise ConfigurationError("payment_delay_seconds must be non-negative")

    @classmethod
    def from_mapping(cls, values: dict) -> "OrderingSettings":
        """Build settings from a flat mapping, coercing values to the declared types."""
        kwargs = {}
        for field in fields(cls):
            raw = values.get(field.name)
            if raw is None:
                continue
            try:
                kwargs[field.name] = str(raw) if field.type in (str, "str") else float(raw)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Invalid value for {field.name}: {raw!r}") from None
        return cls(**kwargs)

    @classmethod
    def from_domain(cls, domain) -> "OrderingSettings":
        """Read the domain's ``custom`` configuration, then apply environment overrides."""
        values = dict(domain.config.get("custom") or {})
        for name, env_var in _ENV_OVERRIDES.items():
            if os.getenv(env_var) is not None:
                values[name] = os.getenv(env_var)
        return cls.from_mapping(values)
