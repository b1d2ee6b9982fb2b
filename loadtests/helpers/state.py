"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state, with no cross-user sharing.
"""

from dataclasses import dataclass, field


@dataclass
class OrderState:
    """Tracks state for a single simulated order lifecycle."""

    customer_id: str
    product_ids: list[str] = field(default_factory=list)
    order_id: str | None = None
    shipment_method: str | None = None
    current_status: str = "pending"
