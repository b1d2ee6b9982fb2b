"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Product")
class ProductRegistered:
    """A product was added to the catalogue with its initial price and stock."""

    __version__ = "v1"

    product_id = Identifier(required=True)
    name = String(required=True)
    slug = String(required=True)
    price = Float(required=True)
    wholesale_price = Float()
    stock_quantity = Integer(required=True)
    distributor_id = Identifier()
    registered_at = DateTime(required=True)


@ordering.event(part_of="Product")
class ProductPricingChanged:
    """Retail and/or wholesale price changed. Existing orders keep their snapshot."""

    __version__ = "v1"

    product_id = Identifier(required=True)
    previous_price = Float(required=True)
    new_price = Float(required=True)
    previous_wholesale_price = Float()
    new_wholesale_price = Float()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockReserved:
    """Units were set aside for an order being placed."""

    __version__ = "v1"

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)


@ordering.event(part_of="Product")
class StockReleased:
    """Units reserved by a cancelled order went back on the shelf."""

    __version__ = "v1"

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)


@ordering.event(part_of="Product")
class ProductRestocked:
    __version__ = "v1"

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    stock_quantity = Integer(required=True)
