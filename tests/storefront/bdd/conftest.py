"""Shared BDD fixtures and step definitions for the storefront."""

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then
from storefront.cart.cart import Cart
from storefront.order.order import Order


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def result():
    """Container for the return value of the last action."""
    return {"value": None}


@pytest.fixture()
def shipping_address():
    return {
        "full_name": "Asha Rao",
        "street": "12 MG Road",
        "city": "Bengaluru",
        "postal_code": "560001",
    }


def _events_named(aggregate, event_type):
    return [e for e in aggregate._events if type(e).__name__ == event_type]


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an empty cart", target_fixture="cart")
def empty_cart():
    cart = Cart.create(owner_id="user-001")
    cart._events.clear()
    return cart


@given("a pending order", target_fixture="order")
def pending_order(shipping_address):
    cart = Cart.create(owner_id="user-001")
    cart.add_line("prod-whisky", 12.99, quantity=2, title="Single Malt")
    cart.add_line("prod-gin", 10.99, title="London Dry")

    order = Order.place(
        user_id="user-001",
        lines_data=cart.snapshot_lines(),
        shipping_address=shipping_address,
        totals=cart.totals(),
        payment_id="PAY_1718000000000_abc123xyz",
    )
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the cart action fails with a validation error")
@then("the order action fails with a validation error")
@then("the payment action fails with a validation error")
def action_fails(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse("a {event_type} cart event is raised"))
def cart_event_raised(cart, event_type):
    assert _events_named(cart, event_type), f"No {event_type} event found"


@then(parsers.cfparse("a {event_type} payment event is raised"))
def payment_event_raised(payment, event_type):
    assert _events_named(payment, event_type), f"No {event_type} event found"
