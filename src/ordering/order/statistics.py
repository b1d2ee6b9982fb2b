"""Tax reporting over placed orders."""

from collections import defaultdict
from dataclasses import dataclass


@dataclass(frozen=True)
class TaxRateSummary:
    tax_rate: float
    order_count: int
    total_tax_collected: float
    total_order_value: float

    @property
    def average_order_value(self) -> float:
        return self.total_order_value / self.order_count if self.order_count else 0.0


def summarize_by_tax_rate(orders) -> list[TaxRateSummary]:
    """Group orders by their current tax rate, lowest rate first."""
    groups = defaultdict(list)
    for order in orders:
        groups[order.tax_rate].append(order)

    return [
        TaxRateSummary(
            tax_rate=rate,
            order_count=len(group),
            total_tax_collected=sum(order.pricing.tax_price for order in group),
            total_order_value=sum(order.pricing.total_price for order in group),
        )
        for rate, group in sorted(groups.items())
    ]
