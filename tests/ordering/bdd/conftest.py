"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from pytest_bdd import given, parsers, then

from ordering.catalogue.product import Product
from ordering.errors import OrderingError
from ordering.order.order import Order, OrderStatus


class Outcome:
    def __init__(self):
        self.order = None
        self.result = None
        self.error = None

    def capture(self, action):
        """Run `action`, keeping either the order it returns or the business error it raises."""
        try:
            result = action()
        except (OrderingError, ValidationError) as exc:
            self.error = exc
            return None
        self.error = None
        self.result = result
        self.order = result[0] if isinstance(result, tuple) else result
        return self.order


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def products():
    """Products registered by Given steps, keyed by name."""
    return {}


@pytest.fixture()
def outcome():
    """The order under test and the last error raised by a When step."""
    return Outcome()


def error_message(exc) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(message for messages in exc.messages.values() for message in messages)
    return exc.message


def _current_order(outcome):
    assert outcome.order is not None, f"no order, last error: {outcome.error}"
    return current_domain.repository_for(Order).get(outcome.order.id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse(
        'a product "{name}" priced {price:d} with wholesale price {wholesale:d} and {stock:d} units in stock'
    )
)
def registered_product(make_product, products, name, price, wholesale, stock):
    products[name] = make_product(name=name, price=float(price), wholesale_price=float(wholesale), stock_quantity=stock)


@given(parsers.cfparse('the customer has ordered {quantity:d} units of "{name}"'))
def existing_order(place, products, outcome, quantity, name):
    outcome.order = place(products[name], quantity=quantity)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the order is pending")
def order_is_pending(outcome):
    assert _current_order(outcome).status == OrderStatus.PENDING.value


@then("the order is cancelled")
def order_is_cancelled(outcome):
    assert _current_order(outcome).status == OrderStatus.CANCELLED.value


@then(parsers.cfparse("the items price is {amount:d}"))
def items_price_is(outcome, amount):
    assert _current_order(outcome).pricing.items_price == amount


@then(parsers.cfparse("the tax price is {amount:d}"))
def tax_price_is(outcome, amount):
    assert _current_order(outcome).pricing.tax_price == amount


@then(parsers.cfparse("the shipping price is {amount:d}"))
def shipping_price_is(outcome, amount):
    assert _current_order(outcome).pricing.shipping_price == amount


@then(parsers.cfparse("the total price is {amount:d}"))
def total_price_is(outcome, amount):
    assert _current_order(outcome).pricing.total_price == amount


@then(parsers.cfparse('the {action} is rejected with "{message}"'))
def rejected_with(outcome, action, message):
    assert outcome.error is not None, f"the {action} was not rejected"
    assert error_message(outcome.error) == message


@then(parsers.cfparse('"{name}" has {stock:d} units in stock'))
def product_stock_is(products, name, stock):
    assert current_domain.repository_for(Product).get(products[name].id).stock_quantity == stock
