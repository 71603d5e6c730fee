import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def run_around_tests(_ctx):
    """Cleanup infrastructure and the channel registry after every test."""
    yield

    from protean import current_domain
    from storefront.sync import reset_channel

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    # Drain event stores
    current_domain.event_store.store._data_reset()

    reset_channel()


@pytest.fixture()
def domain(storefront_bed):
    from storefront.domain import storefront

    return storefront


@pytest.fixture()
def address():
    return {
        "full_name": "Asha Rao",
        "phone": "9800000000",
        "street": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "postal_code": "560001",
        "country": "India",
    }


@pytest.fixture()
def checkout(address):
    """Place an order from a two-line cart and open its payment session.

    Returns a callable so tests can check out more than once; each call
    returns ``{"cart_id", "order_id", "payment_id"}``.
    """
    import json

    from protean import current_domain
    from storefront.cart.lines import AddCartLine
    from storefront.cart.management import CreateCart
    from storefront.order.order import Order
    from storefront.order.placement import PlaceOrder
    from storefront.payment.initiation import StartPayment, new_payment_reference

    def _checkout(owner_id="user-001", session_seconds=300):
        cart_id = current_domain.process(CreateCart(owner_id=owner_id), asynchronous=False)
        for product_id, price, quantity in (("prod-whisky", 12.99, 2), ("prod-gin", 10.99, 1)):
            current_domain.process(
                AddCartLine(cart_id=cart_id, product_id=product_id, unit_price=price, quantity=quantity),
                asynchronous=False,
            )

        payment_id = new_payment_reference()
        order_id = current_domain.process(
            PlaceOrder(
                cart_id=cart_id,
                user_id=owner_id,
                shipping_address=json.dumps(address),
                payment_id=payment_id,
            ),
            asynchronous=False,
        )
        order = current_domain.repository_for(Order).get(order_id)
        current_domain.process(
            StartPayment(
                payment_id=payment_id,
                order_id=order_id,
                user_id=owner_id,
                amount=order.pricing.total,
                session_seconds=session_seconds,
            ),
            asynchronous=False,
        )
        return {"cart_id": cart_id, "order_id": order_id, "payment_id": payment_id}

    return _checkout
