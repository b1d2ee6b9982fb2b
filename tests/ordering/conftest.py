import os

import pytest

from ordering.access import Requester, Role
from ordering.catalogue.service import CatalogueService
from ordering.order.service import OrderService, reset_order_service, set_order_service
from ordering.payments import reset_gateway, set_gateway
from ordering.payments.simulated import SimulatedGateway
from ordering.settings import OrderingSettings


@pytest.fixture(scope="session")
def ordering_domain(request):
    """Initialize the ordering domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from ordering.domain import ordering

    ordering.init()
    return ordering


@pytest.fixture(scope="session", autouse=True)
def setup_db(ordering_domain):
    from ordering.utils.db import drop_db, setup_db

    setup_db(ordering_domain)

    yield

    drop_db(ordering_domain)


@pytest.fixture(autouse=True)
def run_around_tests(ordering_domain):
    """Push domain context before each test, cleanup after."""
    ctx = ordering_domain.domain_context()
    ctx.push()
    set_gateway(SimulatedGateway(delay_seconds=0, failure_rate=0))
    reset_order_service()

    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()
    reset_gateway()
    reset_order_service()
    ctx.pop()


# ---------------------------------------------------------------------------
# Requesters
# ---------------------------------------------------------------------------
@pytest.fixture()
def customer():
    return Requester(user_id="client-001", role=Role.CLIENT.value)


@pytest.fixture()
def other_customer():
    return Requester(user_id="client-002", role=Role.CLIENT.value)


@pytest.fixture()
def admin():
    return Requester(user_id="admin-001", role=Role.ADMIN.value)


@pytest.fixture()
def distributor():
    return Requester(user_id="dist-001", role=Role.DISTRIBUTOR.value)


# ---------------------------------------------------------------------------
# Services and data
# ---------------------------------------------------------------------------
@pytest.fixture()
def gateway():
    return SimulatedGateway(delay_seconds=0, failure_rate=0)


@pytest.fixture()
def service(gateway):
    order_service = OrderService(OrderingSettings(), gateway=gateway)
    set_order_service(order_service)
    return order_service


@pytest.fixture()
def make_product(admin):
    """Register a product through the catalogue and return it."""

    def _make(name="Pastillas de freno", price=25000.0, stock_quantity=100, wholesale_price=None, **kwargs):
        return CatalogueService().register_product(
            admin,
            name=name,
            price=price,
            stock_quantity=stock_quantity,
            wholesale_price=wholesale_price,
            **kwargs,
        )

    return _make


@pytest.fixture()
def address():
    return {
        "street": "Av. Providencia 1234",
        "city": "Santiago",
        "state": "RM",
        "postal_code": "7500000",
        "country": "Chile",
    }


@pytest.fixture()
def pickup():
    return {"name": "Sucursal Centro", "address": "San Diego 456, Santiago", "notes": "Retiro después de las 10"}


@pytest.fixture()
def stock_of():
    """Read a product's current stock straight from the repository."""
    from protean import current_domain

    from ordering.catalogue.product import Product

    def _stock(product_id):
        return current_domain.repository_for(Product).get(str(product_id)).stock_quantity

    return _stock


@pytest.fixture()
def place(service, customer, address):
    """Place a delivery order for `quantity` units of each given product."""

    def _place(*products, quantity=1, requester=None, **kwargs):
        kwargs.setdefault("shipment_method", "delivery")
        if kwargs["shipment_method"] == "delivery":
            kwargs.setdefault("shipping_address", address)
        return service.place_order(
            requester or customer,
            items=[{"product_id": str(product.id), "quantity": quantity} for product in products],
            **kwargs,
        )

    return _place
