"""Application tests for order cancellation and stock release."""

import pytest
from protean.utils.globals import current_domain

from ordering.errors import IllegalTransitionError, NotAuthorizedError, NotFoundError
from ordering.order.order import Order, OrderStatus


class TestCancelOrder:
    def test_owner_cancels_pending_order(self, service, place, make_product, customer, stock_of):
        product = make_product(stock_quantity=10)
        order = place(product, quantity=4)
        assert stock_of(product.id) == 6

        cancelled = service.cancel_order(str(order.id), customer)

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert stock_of(product.id) == 10
        persisted = current_domain.repository_for(Order).get(order.id)
        assert persisted.status == OrderStatus.CANCELLED.value

    def test_admin_cancels_processing_order(self, service, place, make_product, admin, stock_of):
        product = make_product(stock_quantity=10)
        order = place(product, quantity=3)
        service.update_status(str(order.id), admin, status="processing")

        service.cancel_order(str(order.id), admin)

        assert stock_of(product.id) == 10

    def test_releases_every_line(self, service, place, make_product, customer, stock_of):
        pads = make_product(name="Pastillas", stock_quantity=10)
        disc = make_product(name="Disco", stock_quantity=5)
        order = place(pads, disc, quantity=2)

        service.cancel_order(str(order.id), customer)

        assert stock_of(pads.id) == 10
        assert stock_of(disc.id) == 5

    def test_other_client_cannot_cancel(self, service, place, make_product, other_customer, stock_of):
        product = make_product(stock_quantity=10)
        order = place(product, quantity=2)

        with pytest.raises(NotAuthorizedError) as exc:
            service.cancel_order(str(order.id), other_customer)

        assert exc.value.message == "No está autorizado para cancelar esta orden"
        assert stock_of(product.id) == 8

    def test_distributor_cannot_cancel(self, service, place, make_product, distributor):
        order = place(make_product(distributor_id=distributor.user_id))
        with pytest.raises(NotAuthorizedError):
            service.cancel_order(str(order.id), distributor)

    def test_unknown_order(self, service, customer):
        with pytest.raises(NotFoundError) as exc:
            service.cancel_order("missing-order", customer)
        assert exc.value.message == "Orden no encontrada"


class TestCancellationGuards:
    def test_second_cancel_does_not_release_twice(self, service, place, make_product, customer, stock_of):
        product = make_product(stock_quantity=10)
        order = place(product, quantity=4)
        service.cancel_order(str(order.id), customer)

        with pytest.raises(IllegalTransitionError) as exc:
            service.cancel_order(str(order.id), customer)

        assert exc.value.message == "La orden ya ha sido cancelada"
        assert stock_of(product.id) == 10

    def test_shipped_order_cannot_be_cancelled(self, service, place, make_product, customer, admin, stock_of):
        product = make_product(stock_quantity=10)
        order = place(product, quantity=4)
        service.update_status(str(order.id), admin, status="processing")
        service.update_status(str(order.id), admin, status="shipped")

        with pytest.raises(IllegalTransitionError) as exc:
            service.cancel_order(str(order.id), customer)

        assert exc.value.message == "No se puede cancelar una orden que ya ha sido enviada o entregada"
        assert stock_of(product.id) == 6

    def test_delivered_order_cannot_be_cancelled(self, service, place, make_product, admin, stock_of):
        product = make_product(stock_quantity=10)
        order = place(product, quantity=1)
        for status in ("processing", "shipped", "delivered"):
            service.update_status(str(order.id), admin, status=status)

        with pytest.raises(IllegalTransitionError):
            service.cancel_order(str(order.id), admin)
        assert stock_of(product.id) == 9
