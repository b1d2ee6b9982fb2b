"""Order aggregate: a priced, stock-backed purchase and its status machine.

Status machine:
    pending → processing → shipped (delivery) | ready_for_pickup (pickup) → delivered
    pending, processing → cancelled

`delivered` and `cancelled` are terminal. `shipped` and `ready_for_pickup`
are the same stage for the two shipment methods and never interchangeable.
Every status-changing path goes through `check_transition`.
"""

import json
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from ordering.domain import ordering
from ordering.errors import IllegalTransitionError, PaymentError
from ordering.order.events import (
    OrderCancelled,
    OrderMarkedPaid,
    OrderPlaced,
    OrderStatusChanged,
    OrderTaxRecalculated,
    PaymentRecorded,
    PaymentRefunded,
)
from ordering.pricing.resolver import OrderType
from ordering.pricing.shipping import ShipmentMethod


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    READY_FOR_PICKUP = "ready_for_pickup"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(Enum):
    WEBPAY = "webpay"
    BANK_TRANSFER = "bankTransfer"
    CASH = "cash"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.READY_FOR_PICKUP: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}

# Fulfillment stages that exist for one shipment method only
_METHOD_SPECIFIC_STATES = {
    OrderStatus.SHIPPED: ShipmentMethod.DELIVERY,
    OrderStatus.READY_FOR_PICKUP: ShipmentMethod.PICKUP,
}

# Entering these marks the goods as handed over
_DELIVERY_STATES = {OrderStatus.DELIVERED, OrderStatus.READY_FOR_PICKUP}


def parse_status(value) -> OrderStatus:
    """Turn a raw status value into an `OrderStatus`, rejecting unknown values."""
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Estado de orden inválido: {value}"]}) from None


def check_transition(current: OrderStatus, target: OrderStatus, shipment_method: str) -> None:
    """Raise `IllegalTransitionError` unless `current → target` is allowed for the shipment method."""
    if target == OrderStatus.CANCELLED and current not in _CANCELLABLE_STATES:
        if current == OrderStatus.CANCELLED:
            raise IllegalTransitionError("La orden ya ha sido cancelada")
        raise IllegalTransitionError("No se puede cancelar una orden que ya ha sido enviada o entregada")

    if not _VALID_TRANSITIONS[current]:
        raise IllegalTransitionError(f"No se puede cambiar el estado de una orden {current.value}")

    required_method = _METHOD_SPECIFIC_STATES.get(target)
    if required_method is not None and shipment_method != required_method.value:
        raise IllegalTransitionError(
            f"El estado {target.value} no aplica a órdenes con método de envío {shipment_method}"
        )

    if target not in _VALID_TRANSITIONS[current]:
        raise IllegalTransitionError(f"Transición de estado inválida: {current.value} → {target.value}")


@dataclass(frozen=True)
class TaxRecalculation:
    """Before/after figures of a tax recalculation, for caller-side reporting."""

    previous_tax_rate: float
    new_tax_rate: float
    previous_tax_price: float
    new_tax_price: float
    total_price_change: float


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Where a delivery order goes. Captured at placement and never edited."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


@ordering.value_object(part_of="Order")
class PickupLocation:
    name = String(required=True, max_length=255)
    address = String(required=True, max_length=500)
    scheduled_date = DateTime()
    notes = String(max_length=500)


@ordering.value_object(part_of="Order")
class OrderPricing:
    """Money figures of an order, computed by the server at placement."""

    items_price = Float(required=True, min_value=0.0)
    tax_price = Float(required=True, min_value=0.0)
    shipping_price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="CLP")

    @invariant.post
    def total_must_equal_components(self):
        components = (self.items_price, self.tax_price, self.shipping_price, self.total_price)
        if any(value is None for value in components):
            return
        expected = self.items_price + self.tax_price + self.shipping_price
        if not math.isclose(self.total_price, expected, abs_tol=0.005):
            raise ValidationError(
                {"total_price": [f"El total {self.total_price} no coincide con la suma de sus componentes {expected}"]}
            )


@ordering.value_object(part_of="Order")
class FiscalInfo:
    """Tax audit snapshot. `applied_tax_rate` is the rate at placement and never changes."""

    applied_tax_rate = Float(required=True, min_value=0.0, max_value=100.0)
    tax_calculated_at = DateTime(required=True)
    tax_recalculated = Boolean(default=False)
    tax_recalculated_by = Identifier()
    tax_recalculated_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line of the order with the unit price frozen at placement time."""

    product_id = Identifier(required=True)
    distributor_id = Identifier()
    name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    position = Integer(default=0)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@ordering.entity(part_of="Order")
class TaxAdjustment:
    """One entry of the tax recalculation history."""

    previous_tax_rate = Float(required=True)
    new_tax_rate = Float(required=True)
    previous_tax_price = Float(required=True)
    new_tax_price = Float(required=True)
    adjusted_by = Identifier(required=True)
    adjusted_at = DateTime(required=True)


@ordering.entity(part_of="Order")
class PaymentRecord:
    """What the gateway answered for one payment attempt. Written once."""

    transaction_id = String(max_length=100)
    authorization_code = String(max_length=50)
    status = String(required=True, max_length=30)
    approved = Boolean(default=False)
    amount = Float(required=True, min_value=0.0)
    payment_method = String(max_length=30)
    message = String(max_length=255)
    processed_at = DateTime(required=True)


@ordering.entity(part_of="Order")
class RefundRecord:
    transaction_id = String(required=True, max_length=100)
    refund_id = String(required=True, max_length=100)
    status = String(required=True, max_length=30)
    amount = Float(required=True, min_value=0.0)
    reason = String(max_length=255)
    refunded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    customer_id = Identifier(required=True)
    order_type = String(choices=OrderType, default=OrderType.B2C.value)
    items = HasMany(OrderItem)
    shipment_method = String(choices=ShipmentMethod, required=True)
    shipping_address = ValueObject(ShippingAddress)
    pickup_location = ValueObject(PickupLocation)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.WEBPAY.value)
    pricing = ValueObject(OrderPricing)
    tax_rate = Float(min_value=0.0, max_value=100.0)
    fiscal = ValueObject(FiscalInfo)
    tax_adjustments = HasMany(TaxAdjustment)
    payments = HasMany(PaymentRecord)
    refunds = HasMany(RefundRecord)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    is_paid = Boolean(default=False)
    paid_at = DateTime()
    is_delivered = Boolean(default=False)
    delivered_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def items_price_must_match_lines(self):
        self.check_items_price()

    def check_items_price(self):
        """Raise unless the items price equals the sum of the lines."""
        if self.pricing is None or not self.items:
            return
        expected = sum(item.line_total for item in self.items)
        if not math.isclose(self.pricing.items_price, expected, abs_tol=0.005):
            raise ValidationError(
                {"items_price": [f"El subtotal {self.pricing.items_price} no coincide con los productos {expected}"]}
            )

    @invariant.post
    def fulfillment_details_must_match_method(self):
        if self.shipment_method == ShipmentMethod.DELIVERY.value and self.shipping_address is None:
            raise ValidationError(
                {"shipping_address": ["La dirección de envío es requerida para envíos a domicilio"]}
            )
        if self.shipment_method == ShipmentMethod.PICKUP.value and self.pickup_location is None:
            raise ValidationError({"pickup_location": ["La ubicación de retiro es requerida para retiro en tienda"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        lines,
        shipment_method,
        tax_rate,
        tax_price,
        shipping_price,
        payment_method=PaymentMethod.WEBPAY.value,
        order_type=OrderType.B2C.value,
        shipping_address=None,
        pickup_location=None,
        currency="CLP",
    ):
        """Build a pending order with every derived field computed up front.

        Args:
            lines: list of dicts with product_id, distributor_id, name,
                   quantity and the already resolved unit_price.
            tax_price / shipping_price: results of the tax and shipping
                   policies for these lines.
        """
        if not lines:
            raise ValidationError({"items": ["No hay productos en la orden"]})

        now = datetime.now(UTC)
        items_price = sum(line["unit_price"] * line["quantity"] for line in lines)

        order = cls(
            customer_id=str(customer_id),
            order_type=order_type,
            shipment_method=shipment_method,
            shipping_address=shipping_address,
            pickup_location=pickup_location,
            payment_method=payment_method,
            tax_rate=tax_rate,
            fiscal=FiscalInfo(applied_tax_rate=tax_rate, tax_calculated_at=now),
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        with atomic_change(order):
            for position, line in enumerate(lines):
                order.add_items(OrderItem(position=position, **line))
            order.pricing = OrderPricing(
                items_price=items_price,
                tax_price=tax_price,
                shipping_price=shipping_price,
                total_price=items_price + tax_price + shipping_price,
                currency=currency,
            )
        order.check_items_price()

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=str(customer_id),
                order_type=order_type,
                shipment_method=shipment_method,
                payment_method=payment_method,
                items=json.dumps(
                    [
                        {"product_id": str(line["product_id"]), "quantity": line["quantity"], "unit_price": line["unit_price"]}
                        for line in lines
                    ]
                ),
                items_price=items_price,
                tax_price=tax_price,
                shipping_price=shipping_price,
                total_price=order.pricing.total_price,
                tax_rate=tax_rate,
                currency=currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def ordered_items(self):
        return sorted(self.items, key=lambda item: item.position or 0)

    def items_for_distributor(self, distributor_id):
        return [item for item in self.ordered_items if str(item.distributor_id) == str(distributor_id)]

    @property
    def latest_payment(self):
        if not self.payments:
            return None
        return max(self.payments, key=lambda record: record.processed_at)

    @property
    def approved_payment(self):
        return next((record for record in self.payments if record.approved), None)

    @property
    def refunded_amount(self) -> float:
        return sum(record.amount for record in self.refunds)

    @property
    def tax_info(self) -> dict:
        return {
            "rate": self.tax_rate,
            "percentage": f"{self.tax_rate:g}%",
            "amount": self.pricing.tax_price if self.pricing else 0.0,
            "applied_at": self.fiscal.tax_calculated_at if self.fiscal else None,
            "was_recalculated": bool(self.fiscal and self.fiscal.tax_recalculated),
        }

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def transition_to(self, target: OrderStatus):
        """Move along the status machine. Cancellation goes through `cancel`."""
        if target == OrderStatus.CANCELLED:
            raise IllegalTransitionError("Las cancelaciones deben liberar stock; use la operación de cancelación")

        current = OrderStatus(self.status)
        check_transition(current, target, self.shipment_method)

        now = datetime.now(UTC)
        self.status = target.value
        if target in _DELIVERY_STATES and not self.is_delivered:
            self.is_delivered = True
            self.delivered_at = now
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=current.value,
                new_status=target.value,
                changed_at=now,
            )
        )

    def mark_paid(self):
        """Flag the order as paid. Only the first call stamps `paid_at`."""
        if self.status == OrderStatus.CANCELLED.value:
            raise IllegalTransitionError("No se puede marcar como pagada una orden cancelada")
        if self.is_paid:
            return

        now = datetime.now(UTC)
        self.is_paid = True
        self.paid_at = now
        self.updated_at = now
        self.raise_(OrderMarkedPaid(order_id=str(self.id), paid_at=now))

    def cancel(self, cancelled_by):
        """Mark the order cancelled. The caller is responsible for returning the stock."""
        current = OrderStatus(self.status)
        check_transition(current, OrderStatus.CANCELLED, self.shipment_method)

        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=current.value,
                cancelled_by=str(cancelled_by),
                released_items=json.dumps(
                    [{"product_id": str(item.product_id), "quantity": item.quantity} for item in self.ordered_items]
                ),
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Tax
    # -------------------------------------------------------------------
    def recalculate_tax(self, new_rate, new_tax_price, actor_id) -> TaxRecalculation:
        """Apply a new tax rate to the frozen items price and log the change.

        Items are never repriced. `fiscal.applied_tax_rate` keeps the rate used
        at placement; every recalculation is appended to `tax_adjustments`.
        """
        if self.status == OrderStatus.CANCELLED.value:
            raise IllegalTransitionError("No se puede recalcular el IVA de una orden cancelada")
        self.check_items_price()

        now = datetime.now(UTC)
        previous_rate = self.tax_rate
        previous_tax = self.pricing.tax_price
        previous_total = self.pricing.total_price
        new_total = self.pricing.items_price + new_tax_price + self.pricing.shipping_price

        with atomic_change(self):
            self.pricing = OrderPricing(
                items_price=self.pricing.items_price,
                tax_price=new_tax_price,
                shipping_price=self.pricing.shipping_price,
                total_price=new_total,
                currency=self.pricing.currency,
            )
            self.tax_rate = new_rate
            self.fiscal = FiscalInfo(
                applied_tax_rate=self.fiscal.applied_tax_rate,
                tax_calculated_at=self.fiscal.tax_calculated_at,
                tax_recalculated=True,
                tax_recalculated_by=str(actor_id),
                tax_recalculated_at=now,
            )
            self.add_tax_adjustments(
                TaxAdjustment(
                    previous_tax_rate=previous_rate,
                    new_tax_rate=new_rate,
                    previous_tax_price=previous_tax,
                    new_tax_price=new_tax_price,
                    adjusted_by=str(actor_id),
                    adjusted_at=now,
                )
            )
            self.updated_at = now

        self.raise_(
            OrderTaxRecalculated(
                order_id=str(self.id),
                previous_tax_rate=previous_rate,
                new_tax_rate=new_rate,
                previous_tax_price=previous_tax,
                new_tax_price=new_tax_price,
                new_total_price=new_total,
                recalculated_by=str(actor_id),
                recalculated_at=now,
            )
        )
        return TaxRecalculation(
            previous_tax_rate=previous_rate,
            new_tax_rate=new_rate,
            previous_tax_price=previous_tax,
            new_tax_price=new_tax_price,
            total_price_change=new_total - previous_total,
        )

    # -------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------
    def ensure_payable(self):
        if self.status == OrderStatus.CANCELLED.value:
            raise PaymentError("No se puede pagar una orden cancelada")
        if self.is_paid:
            raise PaymentError("La orden ya está pagada")

    def record_payment(self, outcome) -> PaymentRecord:
        """Append the gateway's answer. A successful payment marks the order paid."""
        now = datetime.now(UTC)
        amount = outcome.amount if outcome.amount is not None else self.pricing.total_price
        record = PaymentRecord(
            transaction_id=outcome.transaction_id,
            authorization_code=outcome.authorization_code,
            status=outcome.status,
            approved=outcome.success,
            amount=amount,
            payment_method=self.payment_method,
            message=outcome.message,
            processed_at=now,
        )
        self.add_payments(record)
        self.updated_at = now

        self.raise_(
            PaymentRecorded(
                order_id=str(self.id),
                transaction_id=outcome.transaction_id,
                status=outcome.status,
                approved=outcome.success,
                amount=amount,
                recorded_at=now,
            )
        )
        if outcome.success:
            self.mark_paid()
        return record

    def record_refund(self, transaction_id, outcome, amount) -> RefundRecord:
        now = datetime.now(UTC)
        amount = outcome.amount if outcome.amount is not None else amount
        record = RefundRecord(
            transaction_id=transaction_id,
            refund_id=outcome.refund_id,
            status=outcome.status,
            amount=amount,
            reason=outcome.reason,
            refunded_at=now,
        )
        self.add_refunds(record)
        self.updated_at = now

        self.raise_(
            PaymentRefunded(
                order_id=str(self.id),
                transaction_id=transaction_id,
                refund_id=outcome.refund_id,
                amount=amount,
                reason=outcome.reason,
                refunded_at=now,
            )
        )
        return record
