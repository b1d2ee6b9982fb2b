"""Domain events for the Order aggregate.

Events are immutable facts raised by the aggregate and dispatched when the
unit of work that persisted the change commits.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """An order was priced, its stock reserved, and it was persisted as pending."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_type = String(required=True)
    shipment_method = String(required=True)
    payment_method = String(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity, unit_price}
    items_price = Float(required=True)
    tax_price = Float(required=True)
    shipping_price = Float(required=True)
    total_price = Float(required=True)
    tax_rate = Float(required=True)
    currency = String(default="CLP")
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    __version__ = "v1"

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderMarkedPaid:
    __version__ = "v1"

    order_id = Identifier(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled and every reserved unit returned to stock."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    cancelled_by = Identifier(required=True)
    released_items = Text(required=True)  # JSON: list of {product_id, quantity}
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderTaxRecalculated:
    __version__ = "v1"

    order_id = Identifier(required=True)
    previous_tax_rate = Float(required=True)
    new_tax_rate = Float(required=True)
    previous_tax_price = Float(required=True)
    new_tax_price = Float(required=True)
    new_total_price = Float(required=True)
    recalculated_by = Identifier(required=True)
    recalculated_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentRecorded:
    """A payment attempt came back from the gateway, successful or not."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    transaction_id = String()
    status = String(required=True)
    approved = Boolean(required=True)
    amount = Float(required=True)
    recorded_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentRefunded:
    __version__ = "v1"

    order_id = Identifier(required=True)
    transaction_id = String(required=True)
    refund_id = String(required=True)
    amount = Float(required=True)
    reason = String()
    refunded_at = DateTime(required=True)
