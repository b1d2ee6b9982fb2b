"""Unit price selection for an order line."""

from enum import Enum


class OrderType(Enum):
    B2C = "B2C"
    B2B = "B2B"


def resolve_unit_price(product, order_type: str) -> float:
    """Wholesale price for B2B orders when the product has a non-zero one, retail price otherwise.

    The result is snapshotted onto the order line; later repricing of the
    product never reaches existing orders.
    """
    if order_type == OrderType.B2B.value and product.wholesale_price:
        return float(product.wholesale_price)
    return float(product.price)
