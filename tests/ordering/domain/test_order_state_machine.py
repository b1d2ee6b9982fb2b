"""Tests for Order state machine: valid transitions and invalid transition guards."""

import pytest
from protean.exceptions import ValidationError

from ordering.errors import IllegalTransitionError
from ordering.order.events import OrderCancelled, OrderStatusChanged
from ordering.order.order import (
    Order,
    OrderStatus,
    PickupLocation,
    ShippingAddress,
    check_transition,
    parse_status,
)


def _make_order(shipment_method="delivery"):
    fulfillment = (
        {
            "shipping_address": ShippingAddress(
                street="Av. Matta 100", city="Santiago", state="RM", postal_code="8320000", country="Chile"
            )
        }
        if shipment_method == "delivery"
        else {"pickup_location": PickupLocation(name="Sucursal Centro", address="San Diego 456")}
    )
    order = Order.place(
        customer_id="client-001",
        lines=[{"product_id": "prod-001", "name": "Correa", "quantity": 1, "unit_price": 10000.0}],
        shipment_method=shipment_method,
        tax_rate=19.0,
        tax_price=1900,
        shipping_price=5000.0 if shipment_method == "delivery" else 0.0,
        **fulfillment,
    )
    order._events.clear()
    return order


def _order_at_state(target_status, shipment_method="delivery"):
    """Create an order and advance it to the desired state."""
    order = _make_order(shipment_method)
    path = {
        OrderStatus.PENDING: [],
        OrderStatus.PROCESSING: [OrderStatus.PROCESSING],
        OrderStatus.SHIPPED: [OrderStatus.PROCESSING, OrderStatus.SHIPPED],
        OrderStatus.READY_FOR_PICKUP: [OrderStatus.PROCESSING, OrderStatus.READY_FOR_PICKUP],
    }
    if target_status == OrderStatus.DELIVERED:
        stage = OrderStatus.SHIPPED if shipment_method == "delivery" else OrderStatus.READY_FOR_PICKUP
        steps = [OrderStatus.PROCESSING, stage, OrderStatus.DELIVERED]
    elif target_status == OrderStatus.CANCELLED:
        order.cancel(cancelled_by="client-001")
        order._events.clear()
        return order
    else:
        steps = path[target_status]

    for step in steps:
        order.transition_to(step)
    order._events.clear()
    return order


class TestParseStatus:
    def test_known_value(self):
        assert parse_status("shipped") == OrderStatus.SHIPPED

    def test_unknown_value(self):
        with pytest.raises(ValidationError) as exc:
            parse_status("lost")
        assert exc.value.messages["status"] == ["Estado de orden inválido: lost"]


class TestValidTransitions:
    def test_pending_to_processing(self):
        order = _order_at_state(OrderStatus.PENDING)
        order.transition_to(OrderStatus.PROCESSING)
        assert order.status == OrderStatus.PROCESSING.value

    def test_processing_to_shipped(self):
        order = _order_at_state(OrderStatus.PROCESSING)
        order.transition_to(OrderStatus.SHIPPED)
        assert order.status == OrderStatus.SHIPPED.value
        assert order.is_delivered is False

    def test_shipped_to_delivered(self):
        order = _order_at_state(OrderStatus.SHIPPED)
        order.transition_to(OrderStatus.DELIVERED)
        assert order.status == OrderStatus.DELIVERED.value
        assert order.is_delivered is True
        assert order.delivered_at is not None

    def test_processing_to_ready_for_pickup(self):
        order = _order_at_state(OrderStatus.PROCESSING, shipment_method="pickup")
        order.transition_to(OrderStatus.READY_FOR_PICKUP)
        assert order.status == OrderStatus.READY_FOR_PICKUP.value
        assert order.is_delivered is True
        assert order.delivered_at is not None

    def test_ready_for_pickup_to_delivered_keeps_first_timestamp(self):
        order = _order_at_state(OrderStatus.READY_FOR_PICKUP, shipment_method="pickup")
        handed_over_at = order.delivered_at
        order.transition_to(OrderStatus.DELIVERED)
        assert order.status == OrderStatus.DELIVERED.value
        assert order.delivered_at == handed_over_at

    def test_transition_raises_event(self):
        order = _order_at_state(OrderStatus.PENDING)
        order.transition_to(OrderStatus.PROCESSING)
        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, OrderStatusChanged)
        assert event.previous_status == "pending"
        assert event.new_status == "processing"


class TestInvalidTransitions:
    def test_pending_cannot_skip_to_shipped(self):
        order = _order_at_state(OrderStatus.PENDING)
        with pytest.raises(IllegalTransitionError) as exc:
            order.transition_to(OrderStatus.SHIPPED)
        assert exc.value.message == "Transición de estado inválida: pending → shipped"
        assert order.status == OrderStatus.PENDING.value

    def test_pending_cannot_jump_to_delivered(self):
        order = _order_at_state(OrderStatus.PENDING)
        with pytest.raises(IllegalTransitionError):
            order.transition_to(OrderStatus.DELIVERED)

    def test_delivery_order_cannot_be_ready_for_pickup(self):
        order = _order_at_state(OrderStatus.PROCESSING)
        with pytest.raises(IllegalTransitionError):
            order.transition_to(OrderStatus.READY_FOR_PICKUP)
        assert order.status == OrderStatus.PROCESSING.value

    def test_pickup_order_cannot_be_shipped(self):
        order = _order_at_state(OrderStatus.PROCESSING, shipment_method="pickup")
        with pytest.raises(IllegalTransitionError):
            order.transition_to(OrderStatus.SHIPPED)

    def test_delivered_is_terminal(self):
        order = _order_at_state(OrderStatus.DELIVERED)
        with pytest.raises(IllegalTransitionError) as exc:
            order.transition_to(OrderStatus.PROCESSING)
        assert exc.value.message == "No se puede cambiar el estado de una orden delivered"

    def test_cancelled_is_terminal(self):
        order = _order_at_state(OrderStatus.CANCELLED)
        with pytest.raises(IllegalTransitionError):
            order.transition_to(OrderStatus.PROCESSING)

    def test_cancellation_is_not_a_plain_transition(self):
        order = _order_at_state(OrderStatus.PENDING)
        with pytest.raises(IllegalTransitionError):
            order.transition_to(OrderStatus.CANCELLED)
        assert order.status == OrderStatus.PENDING.value

    def test_processing_cannot_go_back_to_pending(self):
        order = _order_at_state(OrderStatus.PROCESSING)
        with pytest.raises(IllegalTransitionError):
            order.transition_to(OrderStatus.PENDING)


class TestCancellation:
    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.PROCESSING])
    def test_cancellable_states(self, status):
        order = _order_at_state(status)
        order.cancel(cancelled_by="client-001")
        assert order.status == OrderStatus.CANCELLED.value

    def test_cancel_raises_event_with_released_items(self):
        order = _order_at_state(OrderStatus.PENDING)
        order.cancel(cancelled_by="client-001")
        event = order._events[0]
        assert isinstance(event, OrderCancelled)
        assert event.previous_status == "pending"
        assert event.cancelled_by == "client-001"
        assert '"quantity": 1' in event.released_items

    def test_cannot_cancel_shipped_order(self):
        order = _order_at_state(OrderStatus.SHIPPED)
        with pytest.raises(IllegalTransitionError) as exc:
            order.cancel(cancelled_by="client-001")
        assert exc.value.message == "No se puede cancelar una orden que ya ha sido enviada o entregada"

    def test_cannot_cancel_order_ready_for_pickup(self):
        order = _order_at_state(OrderStatus.READY_FOR_PICKUP, shipment_method="pickup")
        with pytest.raises(IllegalTransitionError):
            order.cancel(cancelled_by="client-001")

    def test_cannot_cancel_delivered_order(self):
        order = _order_at_state(OrderStatus.DELIVERED)
        with pytest.raises(IllegalTransitionError):
            order.cancel(cancelled_by="client-001")

    def test_cannot_cancel_twice(self):
        order = _order_at_state(OrderStatus.CANCELLED)
        with pytest.raises(IllegalTransitionError) as exc:
            order.cancel(cancelled_by="client-001")
        assert exc.value.message == "La orden ya ha sido cancelada"


class TestCheckTransition:
    @pytest.mark.parametrize(
        "current,target,method",
        [
            (OrderStatus.PENDING, OrderStatus.PROCESSING, "delivery"),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED, "delivery"),
            (OrderStatus.PROCESSING, OrderStatus.READY_FOR_PICKUP, "pickup"),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED, "delivery"),
            (OrderStatus.READY_FOR_PICKUP, OrderStatus.DELIVERED, "pickup"),
            (OrderStatus.PENDING, OrderStatus.CANCELLED, "pickup"),
        ],
    )
    def test_allowed(self, current, target, method):
        check_transition(current, target, method)

    @pytest.mark.parametrize(
        "current,target,method",
        [
            (OrderStatus.PENDING, OrderStatus.DELIVERED, "delivery"),
            (OrderStatus.SHIPPED, OrderStatus.PROCESSING, "delivery"),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED, "pickup"),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED, "delivery"),
        ],
    )
    def test_rejected(self, current, target, method):
        with pytest.raises(IllegalTransitionError):
            check_transition(current, target, method)
