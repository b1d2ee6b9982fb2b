"""Tests for the Order aggregate: placement, pricing invariants and payment records."""

import json

import pytest
from protean.exceptions import ValidationError
from protean.utils import DomainObjects

from ordering.errors import IllegalTransitionError, PaymentError
from ordering.order.events import OrderMarkedPaid, OrderPlaced, PaymentRecorded, PaymentRefunded
from ordering.order.order import (
    Order,
    OrderPricing,
    OrderStatus,
    PickupLocation,
    ShippingAddress,
)
from ordering.payments.port import PaymentOutcome, RefundOutcome


def _address():
    return ShippingAddress(
        street="Av. Providencia 1234", city="Santiago", state="RM", postal_code="7500000", country="Chile"
    )


def _lines():
    return [
        {"product_id": "prod-001", "distributor_id": "dist-001", "name": "Pastillas", "quantity": 2, "unit_price": 25000.0},
        {"product_id": "prod-002", "distributor_id": "dist-002", "name": "Disco", "quantity": 1, "unit_price": 30000.0},
    ]


def _order(**overrides):
    values = {
        "customer_id": "client-001",
        "lines": _lines(),
        "shipment_method": "delivery",
        "tax_rate": 19.0,
        "tax_price": 15200,
        "shipping_price": 5000.0,
        "shipping_address": _address(),
    }
    values.update(overrides)
    order = Order.place(**values)
    order._events.clear()
    return order


class TestOrderPlacement:
    def test_element_type(self):
        assert Order.element_type == DomainObjects.AGGREGATE

    def test_place_sets_pending_status(self):
        order = _order()
        assert order.status == OrderStatus.PENDING.value
        assert order.is_paid is False
        assert order.is_delivered is False

    def test_place_computes_pricing(self):
        order = _order()
        assert order.pricing.items_price == 80000.0
        assert order.pricing.tax_price == 15200
        assert order.pricing.shipping_price == 5000.0
        assert order.pricing.total_price == 100200.0
        assert order.pricing.currency == "CLP"

    def test_place_keeps_line_order(self):
        order = _order()
        assert [item.product_id for item in order.ordered_items] == ["prod-001", "prod-002"]
        assert order.ordered_items[0].line_total == 50000.0

    def test_place_stamps_fiscal_info(self):
        order = _order()
        assert order.tax_rate == 19.0
        assert order.fiscal.applied_tax_rate == 19.0
        assert order.fiscal.tax_calculated_at is not None
        assert order.fiscal.tax_recalculated is False

    def test_place_raises_event(self):
        order = Order.place(
            customer_id="client-001",
            lines=_lines(),
            shipment_method="delivery",
            tax_rate=19.0,
            tax_price=15200,
            shipping_price=5000.0,
            shipping_address=_address(),
        )
        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, OrderPlaced)
        assert event.total_price == 100200.0
        assert json.loads(event.items)[0] == {"product_id": "prod-001", "quantity": 2, "unit_price": 25000.0}

    def test_place_without_lines(self):
        with pytest.raises(ValidationError) as exc:
            _order(lines=[])
        assert exc.value.messages["items"] == ["No hay productos en la orden"]

    def test_pickup_order_with_location(self):
        order = _order(
            shipment_method="pickup",
            shipping_address=None,
            shipping_price=0.0,
            pickup_location=PickupLocation(name="Sucursal Centro", address="San Diego 456"),
        )
        assert order.pickup_location.name == "Sucursal Centro"
        assert order.shipping_address is None

    def test_delivery_without_address_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _order(shipping_address=None)
        assert "shipping_address" in exc.value.messages

    def test_pickup_without_location_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _order(shipment_method="pickup", shipping_address=None)
        assert "pickup_location" in exc.value.messages

    def test_unknown_shipment_method_is_rejected(self):
        with pytest.raises(ValidationError):
            _order(shipment_method="drone")


class TestPricingInvariants:
    def test_total_must_equal_components(self):
        with pytest.raises(ValidationError) as exc:
            OrderPricing(items_price=100.0, tax_price=19.0, shipping_price=0.0, total_price=120.0)
        assert "total_price" in exc.value.messages

    def test_negative_amounts_are_rejected(self):
        with pytest.raises(ValidationError):
            OrderPricing(items_price=-1.0, tax_price=0.0, shipping_price=0.0, total_price=-1.0)

    def test_missing_component_is_a_validation_error(self):
        with pytest.raises(ValidationError) as exc:
            OrderPricing(items_price=100.0, tax_price=None, shipping_price=0.0, total_price=100.0)
        assert "tax_price" in exc.value.messages

    def test_items_price_must_match_lines(self):
        order = _order()
        with pytest.raises(ValidationError) as exc:
            order.items[0].quantity = 5
            order.check_items_price()
        assert "items_price" in exc.value.messages

    def test_recalculation_rejects_lines_that_no_longer_add_up(self):
        order = _order()
        with pytest.raises(ValidationError) as exc:
            order.items[0].quantity = 5
            order.recalculate_tax(21.0, 16800, actor_id="admin-001")
        assert "items_price" in exc.value.messages


class TestTaxInfo:
    def test_tax_info_reflects_current_rate(self):
        info = _order().tax_info
        assert info["rate"] == 19.0
        assert info["percentage"] == "19%"
        assert info["amount"] == 15200
        assert info["was_recalculated"] is False


class TestDistributorLines:
    def test_items_for_distributor(self):
        order = _order()
        items = order.items_for_distributor("dist-002")
        assert len(items) == 1
        assert items[0].name == "Disco"

    def test_items_for_unknown_distributor(self):
        assert _order().items_for_distributor("dist-999") == []


class TestPayments:
    def test_successful_payment_marks_order_paid(self):
        order = _order()
        order.record_payment(
            PaymentOutcome(success=True, status="completed", transaction_id="TR1", authorization_code="AB12", amount=100200.0)
        )
        assert order.is_paid is True
        assert order.paid_at is not None
        assert order.approved_payment.transaction_id == "TR1"
        assert [type(event) for event in order._events] == [PaymentRecorded, OrderMarkedPaid]

    def test_failed_payment_is_recorded_without_marking_paid(self):
        order = _order()
        order.record_payment(PaymentOutcome(success=False, status="failed", transaction_id="TR2"))
        assert order.is_paid is False
        assert order.approved_payment is None
        assert order.latest_payment.status == "failed"
        assert order.latest_payment.amount == order.pricing.total_price

    def test_ensure_payable_rejects_paid_order(self):
        order = _order()
        order.mark_paid()
        with pytest.raises(PaymentError):
            order.ensure_payable()

    def test_ensure_payable_rejects_cancelled_order(self):
        order = _order()
        order.cancel(cancelled_by="client-001")
        with pytest.raises(PaymentError) as exc:
            order.ensure_payable()
        assert exc.value.message == "No se puede pagar una orden cancelada"

    def test_cancelled_order_cannot_be_marked_paid(self):
        order = _order()
        order.cancel(cancelled_by="client-001")
        with pytest.raises(IllegalTransitionError):
            order.mark_paid()
        assert order.is_paid is False

    def test_mark_paid_is_idempotent(self):
        order = _order()
        order.mark_paid()
        first_paid_at = order.paid_at
        order.mark_paid()
        assert order.paid_at == first_paid_at
        assert len([event for event in order._events if isinstance(event, OrderMarkedPaid)]) == 1

    def test_record_refund(self):
        order = _order()
        order.record_payment(PaymentOutcome(success=True, status="completed", transaction_id="TR1", amount=100200.0))
        order.record_refund(
            "TR1", RefundOutcome(success=True, status="completed", refund_id="RF1", amount=200.0, reason="Falla"), 200.0
        )
        assert order.refunded_amount == 200.0
        assert order.refunds[0].refund_id == "RF1"
        assert isinstance(order._events[-1], PaymentRefunded)
